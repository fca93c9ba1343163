# crawl_bridge/synthesizer.py
"""
Synthesizer of the self-contained scripts executed by the child process.

The crawl script is a fixed template. Request values never become source
text: they are serialized into the ``.params.json`` artifact and the script
receives the parameter and result paths as ``argv``.
"""
from __future__ import annotations

import json
from string import Template
from typing import List

from crawl_bridge.models import CrawlRequest
from crawl_bridge.workspace import Arena

__all__ = ("ScriptSynthesizer", "CRAWL_SCRIPT", "PROBE_SCRIPT")


CRAWL_SCRIPT = Template(r'''"""Crawl job $stem (generated, removed after the run)."""
import asyncio
import importlib
import json
import re
import sys
import traceback

NO_MARKDOWN = "No markdown content was generated."
NO_TEXT = "No text content was extracted."
_MD_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_MD_MARKUP = re.compile(r"^\s{0,3}(#{1,6}\s+|>\s?|[-*+]\s+)|[*_`]+", re.MULTILINE)


def load_params(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_result(path, payload):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, default=str)


def deep_crawl_strategy(engine_name, params):
    if params["depth"] <= 0:
        return None
    deep = importlib.import_module(engine_name + ".deep_crawling")
    limits = {"max_depth": params["depth"], "max_pages": params["max_pages"]}
    if params["strategy"] == "dfs":
        return deep.DFSDeepCrawlStrategy(**limits)
    if params["strategy"] == "best_first":
        keywords = params["query"].split()
        scorer = deep.KeywordRelevanceScorer(keywords=keywords) if keywords else None
        return deep.BestFirstCrawlingStrategy(url_scorer=scorer, **limits)
    return deep.BFSDeepCrawlStrategy(**limits)


def run_config(engine, params, deep):
    options = {
        "capture_network_requests": params["capture_network_traffic"],
        "capture_console_messages": params["capture_console"],
        "capture_mhtml": params["capture_html"],
        "screenshot": params["capture_screenshots"],
        "delay_before_return_html": params["wait_time"] / 1000.0,
    }
    if deep is not None:
        options["deep_crawl_strategy"] = deep
    return engine.CrawlerRunConfig(**options)


def page_markdown(page):
    markdown = getattr(page, "markdown", None)
    raw = getattr(markdown, "raw_markdown", None) or markdown
    return str(raw) if raw else ""


def page_text(page):
    extracted = getattr(page, "extracted_content", None)
    if extracted:
        return str(extracted)
    text = _MD_LINK.sub(r"\1", page_markdown(page))
    return _MD_MARKUP.sub("", text).strip()


def build_output(url, results, params):
    pages = results if isinstance(results, list) else [results]
    if not pages:
        raise RuntimeError("Crawler returned no pages")
    ok = [p for p in pages if getattr(p, "success", True)]
    if not ok:
        raise RuntimeError(getattr(pages[0], "error_message", None) or "Crawl failed")

    media = {}
    tables = []
    for page in ok:
        for kind, items in (getattr(page, "media", None) or {}).items():
            media.setdefault(kind, []).extend(items or [])
        tables.extend(getattr(page, "tables", None) or [])
    if not media.get("tables"):
        media["tables"] = tables

    output = {
        "success": True,
        "url": url,
        "markdown": "\n\n---\n\n".join(filter(None, map(page_markdown, ok))) or NO_MARKDOWN,
        "media": media,
        "text": "\n\n".join(filter(None, map(page_text, ok))) or NO_TEXT,
    }
    if len(pages) > 1:
        output["pages"] = [getattr(p, "url", None) for p in ok]
    if params["capture_network_traffic"]:
        output["networkRequests"] = [r for p in ok for r in (getattr(p, "network_requests", None) or [])]
    if params["capture_console"]:
        output["consoleMessages"] = [m for p in ok for m in (getattr(p, "console_messages", None) or [])]
    if params["capture_screenshots"]:
        output["screenshot"] = getattr(ok[0], "screenshot", None)
    if params["capture_html"]:
        output["mhtml"] = getattr(ok[0], "mhtml", None)
    return output


async def run(params_path, result_path):
    url = ""
    try:
        params = load_params(params_path)
        url = params["url"]
        engine = importlib.import_module(params["engine_module"])
        config = run_config(engine, params, deep_crawl_strategy(params["engine_module"], params))
        async with engine.AsyncWebCrawler() as crawler:
            results = await crawler.arun(url=url, config=config)
        write_result(result_path, build_output(url, results, params))
        print("Crawling completed successfully")
        return 0
    except Exception as exc:
        error = str(exc) or type(exc).__name__
        trace = traceback.format_exc()
        write_result(result_path, {
            "success": False,
            "url": url,
            "error": error,
            "traceback": trace,
            "markdown": f"# Error\n\nError occurred while crawling {url}: {error}",
            "text": f"Error occurred while crawling {url}: {error}",
        })
        print(f"Error during crawling: {error}")
        print(trace)
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(run(sys.argv[1], sys.argv[2])))
''')


PROBE_SCRIPT = r'''"""Crawl engine health probe (generated, removed after the run)."""
import importlib
import sys

name = sys.argv[1] if len(sys.argv) > 1 else "crawl4ai"
try:
    importlib.import_module(name)
except Exception as exc:
    print(f"Error importing {name}: {exc}")
    sys.exit(1)
print(f"{name} is installed and working")
sys.exit(0)
'''


class ScriptSynthesizer:
    """Writes the script/parameter artifacts of an arena and returns the argv tail."""

    def __init__(self, engine_module: str = "crawl4ai") -> None:
        self.engine_module = engine_module

    def render(self, arena: Arena) -> str:
        return CRAWL_SCRIPT.substitute(stem=arena.stem)

    def render_probe(self) -> str:
        return PROBE_SCRIPT

    def params(self, request: CrawlRequest) -> dict:
        data = request.to_params()
        data["engine_module"] = self.engine_module
        return data

    def write(self, request: CrawlRequest, arena: Arena) -> List[str]:
        """Create the crawl artifacts for *request*; *request* must already be resolved."""
        arena.params_path.write_text(
            json.dumps(self.params(request), ensure_ascii=False), encoding="utf-8"
        )
        arena.script_path.write_text(self.render(arena), encoding="utf-8")
        return [str(arena.script_path), str(arena.params_path), str(arena.result_path)]

    def write_probe(self, arena: Arena) -> List[str]:
        arena.script_path.write_text(self.render_probe(), encoding="utf-8")
        return [str(arena.script_path), self.engine_module]
