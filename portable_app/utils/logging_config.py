# portable_app/utils/logging_config.py

"""
Application logging setup driven by ``MonitoringConfig`` settings.

Console and rotating-file handlers are attached to ``app.logger``; the
format is JSON lines in production and plain text elsewhere.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """
    Render log records as single-line JSON documents.

    Each document carries ``timestamp`` (UTC, ISO 8601), ``level``,
    ``logger`` and the formatted ``message``, plus every attribute passed
    through ``extra=`` (for example ``migration_job_id``) and, when the
    record has exception info, the formatted traceback under ``exception``.
    Values that are not JSON types are written with ``str()``.
    """

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(log_format):
    if (log_format or "").lower() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(app):
    """Configure ``app.logger`` handlers from the app config. Safe to call repeatedly."""

    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        raise ValueError(f"Invalid LOG_LEVEL '{level_name}'")

    formatter = _build_formatter(app.config.get("LOG_FORMAT", "text"))

    logger = app.logger
    for handler in list(logger.handlers):
        if getattr(handler, "_portable_app_handler", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        console_handler._portable_app_handler = True
        logger.addHandler(console_handler)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "portability.log"),
            maxBytes=app.config.get("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024),
            backupCount=app.config.get("LOG_FILE_BACKUP_COUNT", 10),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler._portable_app_handler = True
        logger.addHandler(file_handler)

    return logger
