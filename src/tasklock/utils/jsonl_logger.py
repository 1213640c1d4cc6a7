"""
JSONL logging utility for tasklock.

This module provides JSONL (JSON Lines) logging for the state audit trail.
Each audit entry is a single JSON object on its own line, written next to the
lock record so an operator can reconstruct what happened to it.
"""

import json
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Optional

AUDIT_LOG_NAME = "state-audit.jsonl"


class JSONLFormatter(logging.Formatter):
    """Custom JSONL formatter for structured logging."""

    def __init__(self, service: Optional[str] = None):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSONL entry."""
        log_entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "service": self.service or "unknown",
            "event": getattr(record, "event", None),
            "msg": record.getMessage(),
        }

        if hasattr(record, "error") and record.error:
            log_entry["error"] = record.error

        # Add any extra JSON data from record
        if hasattr(record, "json_data") and record.json_data:
            log_entry.update(record.json_data)

        return json.dumps(log_entry, ensure_ascii=False)


class JSONLHandler(TimedRotatingFileHandler):
    """Daily rotating file handler with JSONL formatting."""

    def __init__(self, log_file: Path, service: str, level: int = logging.INFO):
        log_file.parent.mkdir(parents=True, exist_ok=True)

        super().__init__(
            filename=str(log_file),
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
            delay=True,
        )

        self.setFormatter(JSONLFormatter(service=service))
        self.setLevel(level)


def setup_audit_logger(state_dir: Path, level: int = logging.INFO) -> logging.Logger:
    """
    Set up the audit logger for one state directory.

    Args:
        state_dir: Directory holding the lock record
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    log_file = Path(state_dir) / AUDIT_LOG_NAME
    logger = logging.getLogger(f"tasklock.audit.{log_file.resolve()}")
    logger.setLevel(level)

    # Clear any existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    logger.addHandler(JSONLHandler(log_file, "state-store", level))

    # Audit entries stay out of the console log
    logger.propagate = False

    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    message: str,
    level: int = logging.INFO,
    error: Optional[str] = None,
    **fields: Any,
) -> None:
    """
    Log an audit event with structured fields.

    Args:
        logger: Logger instance
        event: Stable event name (e.g. STATE_WRITE)
        message: Human readable message
        level: Log level
        error: Error message, for failure events
        **fields: Additional fields to include in the entry
    """
    extra: dict[str, Any] = {"event": event}
    if error:
        extra["error"] = error
    if fields:
        extra["json_data"] = fields

    logger.log(level, message, extra=extra)


def read_audit_log(state_dir: Path) -> list[dict[str, Any]]:
    """Read back the audit entries of a state directory."""
    log_file = Path(state_dir) / AUDIT_LOG_NAME
    if not log_file.exists():
        return []
    with open(log_file, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]
