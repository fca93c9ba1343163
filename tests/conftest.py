# File: tests/conftest.py
import logging
import sys
import textwrap
from pathlib import Path

import pytest

from crawl_bridge.config import ServiceConfig
from crawl_bridge.logger import LOGGER_NAME
from crawl_bridge.pipeline import CrawlPipeline

# Behaviour of the stub engine is selected by markers in the URL path.
STUB_ENGINE = textwrap.dedent(
    '''
    import asyncio
    import json
    import os
    import sys


    class CrawlerRunConfig:
        def __init__(self, **options):
            self.options = options


    class Page:
        def __init__(self, url, markdown, extracted_content=None, success=True, error_message=None):
            self.url = url
            self.markdown = markdown
            self.extracted_content = extracted_content
            self.success = success
            self.error_message = error_message
            self.media = {"images": [], "tables": [{"headers": ["col"], "rows": [[url]]}]}


    class AsyncWebCrawler:
        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc):
            return False

        async def arun(self, url, config):
            print(f"stub engine crawling {url}")
            print("stub engine warning", file=sys.stderr)
            options = json.dumps(config.options, default=repr, sort_keys=True)
            if "/__fail__" in url:
                raise RuntimeError("stub engine exploded")
            if "/__crash__" in url:
                sys.stdout.flush()
                os._exit(3)
            if "/__slow__" in url:
                await asyncio.sleep(60)
            if "/__unsuccessful__" in url:
                return Page(url, "", success=False, error_message="net::ERR_NAME_NOT_RESOLVED")
            strategy = config.options.get("deep_crawl_strategy")
            if strategy is not None:
                count = strategy.kwargs["max_pages"]
                return [Page(f"{url}/p{i}", f"# Page {i}", options) for i in range(count)]
            return Page(url, f"# Stub\\n\\nContent of {url}", options)
    '''
)

STUB_DEEP_CRAWLING = textwrap.dedent(
    '''
    class _Strategy:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

        def __repr__(self):
            return f"{type(self).__name__}({self.kwargs!r})"


    class BFSDeepCrawlStrategy(_Strategy):
        pass


    class DFSDeepCrawlStrategy(_Strategy):
        pass


    class BestFirstCrawlingStrategy(_Strategy):
        pass


    class KeywordRelevanceScorer:
        def __init__(self, keywords):
            self.keywords = keywords

        def __repr__(self):
            return f"KeywordRelevanceScorer({self.keywords!r})"
    '''
)


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


@pytest.fixture()
def stub_engine_path(tmp_path) -> Path:
    """
    Write an importable ``stub_engine`` package that mimics the crawl4ai API
    the generated script relies on. Returns the directory to put on PYTHONPATH.
    """
    root = tmp_path / "engine"
    pkg = root / "stub_engine"
    pkg.mkdir(parents=True)
    (pkg / "__init__.py").write_text(STUB_ENGINE, encoding="utf-8")
    (pkg / "deep_crawling.py").write_text(STUB_DEEP_CRAWLING, encoding="utf-8")
    return root


@pytest.fixture()
def service_config(tmp_path, stub_engine_path) -> ServiceConfig:
    """
    Return a ServiceConfig running the stub engine in a private workspace.
    """
    return ServiceConfig(
        workspace_dir=tmp_path / "work",
        python_executable=sys.executable,
        engine_module="stub_engine",
        python_path=[stub_engine_path],
        crawl_timeout=30.0,
        health_timeout=30.0,
    )


@pytest.fixture()
def pipeline(service_config) -> CrawlPipeline:
    return CrawlPipeline(service_config)


@pytest.fixture()
def bridge_logs(caplog):
    """
    The project logger does not propagate to root, so hook caplog's handler
    onto it directly.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    yield caplog
    lg.removeHandler(caplog.handler)
