"""Unit tests for core.logger module.

Tests the structlog-based logging configuration:
- configure_logging() installs one formatted stdout handler
- JSON output carries dotted event names and ``extra`` fields
- Context variables are merged into stdlib records
- Noisy third-party loggers are quieted
"""

import io
import json
import logging

import pytest
import structlog

from core.logger import (
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def _clean_root_logger():
    """Save and restore root logger state around each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    clear_contextvars()
    structlog.reset_defaults()


def _capture() -> io.StringIO:
    buffer = io.StringIO()
    logging.getLogger().handlers[0].setStream(buffer)
    return buffer


@pytest.mark.unit
class TestConfigureLogging:
    def test_installs_single_handler(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_defaults_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_quiets_http_loggers(self):
        configure_logging()
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


@pytest.mark.unit
class TestJsonOutput:
    def test_stdlib_record_with_extra(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        configure_logging()
        buffer = _capture()

        logging.getLogger("services.test").info(
            "render.rendered", extra={"backend": "vector", "size_bytes": 512}
        )

        parsed = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert parsed["event"] == "render.rendered"
        assert parsed["level"] == "info"
        assert parsed["logger"] == "services.test"
        assert parsed["backend"] == "vector"
        assert parsed["size_bytes"] == 512
        assert "timestamp" in parsed

    def test_context_variables_are_merged(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        configure_logging()
        buffer = _capture()

        bind_contextvars(batch_index=3, item_id="item-3")
        logging.getLogger("services.test").warning("batch.item_failed")

        parsed = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert parsed["batch_index"] == 3
        assert parsed["item_id"] == "item-3"

    def test_structlog_logger(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        configure_logging()
        buffer = _capture()

        get_logger("rendering.test").info("asset.fetch_failed", url="https://x")

        parsed = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert parsed["event"] == "asset.fetch_failed"
        assert parsed["url"] == "https://x"
