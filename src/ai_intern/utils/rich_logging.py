"""Logging setup with ticket/step context and readable console output."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "ai_intern"


class InternLogFormatter(logging.Formatter):
    """Formatter that prefixes messages with the ticket key and workflow step."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        ticket_context = f"[{record.ticket_key}] " if getattr(record, "ticket_key", None) else ""
        step_context = f"[{record.step}] " if getattr(record, "step", None) else ""

        if self.use_colors:
            level_color = self.LEVEL_COLORS.get(record.levelname, "")
            reset = self.RESET
        else:
            level_color = ""
            reset = ""

        message = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"{ticket_context}{step_context}{record.getMessage()}"
        )
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("ticket_key", "step"):
            value = getattr(record, attr, None)
            if value:
                payload[attr] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class TicketLogger(logging.LoggerAdapter):
    """Logger adapter that tags every record with a ticket key and the current step.

    One instance per ticket workflow; concurrent workflows never share one.
    """

    def __init__(self, logger: logging.Logger, ticket_key: str):
        super().__init__(logger, {})
        self.ticket_key = ticket_key
        self.step: Optional[str] = None

    def set_step(self, step: Optional[str]) -> None:
        self.step = step

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["ticket_key"] = self.ticket_key
        if self.step:
            extra["step"] = self.step
        kwargs["extra"] = extra
        return msg, kwargs


def setup_rich_logging(
    workspace: Path,
    log_level: str = "INFO",
    use_file: bool = True,
    use_json: bool = False,
) -> logging.Logger:
    """
    Install console (and optionally file) handlers on the package logger.

    Args:
        workspace: Workspace path; log files go to ``<workspace>/logs``
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_file: Write to ``logs/intern.log``
        use_json: Emit JSON lines instead of the human-readable format

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    if use_json:
        console_handler.setFormatter(JSONLogFormatter())
    else:
        use_colors = sys.stderr.isatty() if hasattr(sys.stderr, "isatty") else False
        console_handler.setFormatter(InternLogFormatter(use_colors=use_colors))
    logger.addHandler(console_handler)

    if use_file:
        log_dir = Path(workspace) / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "intern.log")
        # Plain formatter for files (no ANSI codes)
        file_handler.setFormatter(JSONLogFormatter() if use_json else InternLogFormatter(use_colors=False))
        logger.addHandler(file_handler)

    return logger
