"""Console and audit logging for head opening runs.

Progress records carry ``extra={"event": ..., "data": {...}}``. The console
shows them prefixed with the participant they concern; the optional audit file
keeps one JSON object per record with ``participant`` and ``step`` lifted out
of ``data`` so a failed run can be traced to the step that aborted it.
"""

from __future__ import annotations

import json
import logging
from logging import Logger
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "head_opener"


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    data = getattr(record, "data", None)
    return data if isinstance(data, dict) else {}


class ParticipantFormatter(logging.Formatter):
    """Prefix console lines with ``[participant]`` and suffix the failing step."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = _context(record)
        participant = context.get("participant")
        if participant and not message.startswith(f"[{participant}]"):
            message = f"[{participant}] {message}"
        if context.get("step"):
            message = f"{message} (step {context['step']})"
        return message


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record for the run's audit trail."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        context = _context(record)
        entry: Dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None),
            "participant": context.get("participant"),
            "step": context.get("step"),
            "message": record.getMessage(),
        }
        if context:
            entry["data"] = context
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _console_handler() -> logging.Handler:
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    handler.setFormatter(ParticipantFormatter("%(message)s"))
    return handler


def _audit_handler(log_file: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(StructuredJsonFormatter())
    return handler


def configure_logging(log_file: Optional[str] = None, *, level: int = logging.INFO) -> Logger:
    """Attach the console handler, and the audit file when ``log_file`` is set."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.addHandler(_console_handler())
    if log_file:
        logger.addHandler(_audit_handler(log_file))
    logger.debug("Logging ready (audit file: %s)", log_file or "none", extra={"event": "logging_ready"})
    return logger


__all__ = ["configure_logging", "ParticipantFormatter", "StructuredJsonFormatter", "LOGGER_NAME"]
