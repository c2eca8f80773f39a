"""Tests for ticket-aware logging."""

import json
import logging

from ai_intern.utils.rich_logging import InternLogFormatter, JSONLogFormatter, TicketLogger, setup_rich_logging


def _record(msg="hello", **extra):
    record = logging.LogRecord("ai_intern.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_adds_ticket_and_step():
    line = InternLogFormatter(use_colors=False).format(_record(ticket_key="PROJ-12", step="generate"))

    assert line.endswith("INFO     [PROJ-12] [generate] hello")


def test_formatter_without_context():
    line = InternLogFormatter(use_colors=False).format(_record())

    assert line.endswith("INFO     hello")
    assert "\033[" not in line


def test_json_formatter():
    payload = json.loads(JSONLogFormatter().format(_record(ticket_key="PROJ-1")))

    assert payload["message"] == "hello"
    assert payload["ticket_key"] == "PROJ-1"
    assert "step" not in payload


def test_ticket_logger_attaches_context():
    adapter = TicketLogger(logging.getLogger("ai_intern.test"), "PROJ-7")
    adapter.set_step("push")

    _, kwargs = adapter.process("msg", {"extra": {"other": 1}})

    assert kwargs["extra"] == {"other": 1, "ticket_key": "PROJ-7", "step": "push"}


def test_setup_writes_log_file(tmp_path):
    logger = setup_rich_logging(tmp_path, log_level="DEBUG", use_file=True)
    try:
        logging.getLogger("ai_intern.core.test").info("written to file")
        for handler in logger.handlers:
            handler.flush()

        assert "written to file" in (tmp_path / "logs" / "intern.log").read_text()
    finally:
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True
