"""
Structured logging setup for all modules.

Provides JSON-structured logging with automatic project_id / variant_id
injection.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from shared.config import settings

# Context variables injected into every record
project_id_context: ContextVar[Optional[Union[UUID, str]]] = ContextVar("project_id", default=None)
variant_id_context: ContextVar[Optional[Union[UUID, str]]] = ContextVar("variant_id", default=None)

# Standard LogRecord attributes that are not "extra" fields
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "getMessage", "taskName"
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }

        project_id = project_id_context.get()
        if project_id:
            log_data["project_id"] = str(project_id)
        variant_id = variant_id_context.get()
        if variant_id:
            log_data["variant_id"] = str(variant_id)

        # Extra fields are set as attributes on the record
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                if isinstance(value, (str, int, float, bool, type(None))):
                    log_data[key] = value
                else:
                    log_data[key] = str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (e.g., "variant_fanout")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Don't add handlers if already configured
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    logger.addHandler(console_handler)

    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    file_handler = RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=100 * 1024 * 1024,  # 100MB
        backupCount=5
    )
    file_handler.setFormatter(JSONFormatter())
    logger.addHandler(file_handler)

    return logger


def set_project_id(project_id: Optional[Union[UUID, str]]) -> None:
    """Set project_id in context for automatic injection into logs."""
    project_id_context.set(project_id)


def get_project_id() -> Optional[Union[UUID, str]]:
    """Get current project_id from context."""
    return project_id_context.get()


def set_variant_id(variant_id: Optional[Union[UUID, str]]) -> None:
    """Set variant_id in context for automatic injection into logs."""
    variant_id_context.set(variant_id)


def get_variant_id() -> Optional[Union[UUID, str]]:
    """Get current variant_id from context."""
    return variant_id_context.get()
