"""
Structured logging configuration for the session store.

Provides JSON-formatted logging that keeps session payloads out of log output.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from session_store.core.config import Settings, settings

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'message',
}

_SENSITIVE_KEYWORDS = {
    'payload', 'json', 'session_data', 'cookie', 'password', 'secret', 'token',
}


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Extra fields whose name looks like session content are redacted unless
    ``include_sensitive`` is set.
    """

    def __init__(self, include_sensitive: bool = False):
        """
        Initialize structured formatter.

        Args:
            include_sensitive: Whether to include session payloads in logs
        """
        super().__init__()
        self.include_sensitive = include_sensitive

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if not self.include_sensitive and self._is_sensitive_field(key):
                extra_fields[key] = "[REDACTED]"
            else:
                extra_fields[key] = value

        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=self._json_default)

    def _is_sensitive_field(self, key: str) -> bool:
        """Check if field may carry session content"""
        key_lower = key.lower()
        return any(keyword in key_lower for keyword in _SENSITIVE_KEYWORDS)

    def _json_default(self, obj: Any) -> str:
        """JSON serializer for objects not serializable by default"""
        if isinstance(obj, datetime):
            return obj.isoformat()
        return str(obj)


def setup_logging(
    log_level: str = "INFO",
    enable_json: bool = True,
    log_file: Optional[str] = None,
    include_sensitive: bool = False
) -> None:
    """
    Configure logging for processes embedding the session store.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json: Whether to use JSON formatting
        log_file: Optional file path for logging
        include_sensitive: Whether to include session payloads in logs
    """
    logging.root.handlers.clear()

    if enable_json:
        formatter: logging.Formatter = StructuredFormatter(include_sensitive=include_sensitive)
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # SQL echo goes through its own logger; keep it quiet unless asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def init_store_logging(config: Optional[Settings] = None) -> None:
    """Initialize logging from session store settings"""
    config = config or settings

    setup_logging(
        log_level=config.log_level,
        enable_json=config.json_logging,
    )

    logger = logging.getLogger("session_store.startup")
    logger.info(
        "Session store logging initialized",
        extra={
            "json_logging": config.json_logging,
            "log_level": config.log_level,
        }
    )
