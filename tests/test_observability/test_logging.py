"""
Tests for structured logging setup.
"""

import json
import logging

import structlog

from banking_pipeline.config import settings
from banking_pipeline.observability.logging import add_service_info, case_log_context, setup_logging


class TestLogging:

    def test_setup_installs_single_stdout_handler(self):
        setup_logging()
        root = logging.getLogger()
        assert len(root.handlers) == 1
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert formatter.foreign_pre_chain

    def test_level_override(self):
        setup_logging("warning")
        assert logging.getLogger().level == logging.WARNING
        setup_logging()

    def test_service_info_added(self):
        event = add_service_info(None, "info", {"event": "x"})
        assert event["service"] == settings.APP_NAME
        assert event["version"] == settings.APP_VERSION

    def test_service_info_keeps_explicit_values(self):
        event = add_service_info(None, "info", {"event": "x", "service": "worker"})
        assert event["service"] == "worker"

    def test_stdlib_record_rendered_with_case_context(self, capsys, monkeypatch):
        monkeypatch.setattr(settings, "DEBUG", False)
        setup_logging()
        try:
            with case_log_context(9, 31):
                logging.getLogger("banking.stdlib").warning("pool exhausted")
            line = capsys.readouterr().out.strip().splitlines()[-1]
        finally:
            logging.getLogger().handlers.clear()

        record = json.loads(line)
        assert record["event"] == "pool exhausted"
        assert record["level"] == "warning"
        assert record["logger"] == "banking.stdlib"
        assert record["case_id"] == 9
        assert record["document_id"] == 31
        assert record["service"] == settings.APP_NAME


class TestCaseLogContext:

    def test_binds_inside_block_only(self):
        structlog.contextvars.clear_contextvars()
        with case_log_context(4, 17):
            assert structlog.contextvars.get_contextvars() == {"case_id": 4, "document_id": 17}
        assert structlog.contextvars.get_contextvars() == {}

    def test_case_only(self):
        structlog.contextvars.clear_contextvars()
        with case_log_context(5):
            assert structlog.contextvars.get_contextvars() == {"case_id": 5}

    def test_outer_context_restored(self):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id="r-1")
        try:
            with case_log_context(4, 17):
                with case_log_context(6, 2):
                    assert structlog.contextvars.get_contextvars() == {
                        "request_id": "r-1", "case_id": 6, "document_id": 2,
                    }
                assert structlog.contextvars.get_contextvars() == {
                    "request_id": "r-1", "case_id": 4, "document_id": 17,
                }
            assert structlog.contextvars.get_contextvars() == {"request_id": "r-1"}
        finally:
            structlog.contextvars.clear_contextvars()
