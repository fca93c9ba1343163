# setup.py
from setuptools import setup, find_packages

setup(
    name="crawl_bridge",
    version="0.1.0",
    description="HTTP-сервис CrawlBridge: краулинг через изолированный подпроцесс crawl4ai",
    packages=find_packages(exclude=["tests", "tests.*"]),  # найдёт папку crawl_bridge
    install_requires=[
        "aiohttp>=3.9",
        "click>=8.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        # движок запускается в дочернем интерпретаторе (python_executable)
        "engine": ["crawl4ai>=0.6"],
        "test": ["pytest>=7.4", "pytest-asyncio>=0.23"],
    },
    entry_points={
        "console_scripts": ["crawl_bridge=crawl_bridge.cli:cli"],
    },
    python_requires=">=3.11",
)
