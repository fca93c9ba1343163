# File: tests/test_logger.py
import logging
import sys

import pytest

from crawl_bridge.logger import CHILD_LOGGER, LOGGER_NAME, configure, get_logger, init_logging
from crawl_bridge.supervisor import ProcessSupervisor


@pytest.fixture()
def project_records(caplog):
    """Attach caplog's handler to the non-propagating project logger."""
    lg = logging.getLogger(LOGGER_NAME)
    yield caplog
    lg.removeHandler(caplog.handler)
    init_logging()


def _attach(caplog) -> None:
    logging.getLogger(LOGGER_NAME).addHandler(caplog.handler)


def _child_script(tmp_path) -> str:
    path = tmp_path / "chatty.py"
    path.write_text("print('engine says hi')\n", encoding="utf-8")
    return str(path)


@pytest.mark.asyncio()
async def test_child_output_visible_at_info_with_debug_child_level(tmp_path, project_records):
    configure(level="INFO", child_level="DEBUG")
    _attach(project_records)

    await ProcessSupervisor(sys.executable).run([_child_script(tmp_path)], timeout=30)

    child = [r for r in project_records.records if r.name == f"{LOGGER_NAME}.{CHILD_LOGGER}"]
    assert any("engine says hi" in r.getMessage() for r in child)
    # service-level debug stays hidden
    assert not any(r.levelno == logging.DEBUG and r.name.endswith("supervisor") for r in project_records.records)


@pytest.mark.asyncio()
async def test_child_output_follows_service_level_by_default(tmp_path, project_records):
    configure(level="INFO")
    _attach(project_records)

    await ProcessSupervisor(sys.executable).run([_child_script(tmp_path)], timeout=30)

    assert not any("engine says hi" in r.getMessage() for r in project_records.records)
    assert get_logger(CHILD_LOGGER).level == logging.NOTSET


def test_log_file_receives_records(tmp_path):
    log_file = tmp_path / "bridge.log"
    try:
        configure(level="INFO", log_file=log_file, log_format="%(levelname)s %(name)s %(message)s")
        get_logger("test").info("written to file")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()
        assert "INFO CrawlBridge.test written to file" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.close()
        init_logging()


def test_configure_replaces_handlers():
    lg = configure(level="WARNING")
    assert len(lg.handlers) == 1
    assert lg.level == logging.WARNING
    assert lg.propagate is False
    lg = configure(level="INFO", replace_handlers=False)
    assert len(lg.handlers) == 2
    init_logging()
