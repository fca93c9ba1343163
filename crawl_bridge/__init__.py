# crawl_bridge/__init__.py
"""
CrawlBridge package initializer.
Defines package version and exposes the CLI.
"""
__version__ = "0.1.0"

from .cli import cli  # noqa: E402
