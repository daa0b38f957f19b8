"""
Application logging.

Four named channels, each optionally mirrored to a rotating file under
``settings.LOG_DIR``:

- ``api``  request lines from ``RequestLoggerMiddleware`` and rate limiting
- ``auth`` register / login outcomes
- ``db``   store failures, cache errors, report sweeps
- ``ai``   provider calls, written as JSON lines

Helpers attach a structured payload to the record, so the JSON formatter can
emit it as ``data`` while the console keeps a single readable line.
"""

import logging
import json
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Dict, Any, Optional

from aetherra.core.config import settings

LINE_FORMAT = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class StructuredLogger(logging.Logger):
    """Logger whose records can carry a ``structured_data`` payload."""

    def structured(self, level: int, msg: str, structured_data: Dict[str, Any], **kwargs):
        if not self.isEnabledFor(level):
            return
        extra = dict(kwargs.pop("extra", None) or {})
        extra["structured_data"] = structured_data
        self._log(level, msg, (), extra=extra, **kwargs)


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if getattr(record, "structured_data", None):
            log_data["data"] = record.structured_data
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def setup_logger(
    name: str,
    log_level: str = "INFO",
    log_to_file: Optional[bool] = None,
    json_format: bool = False
) -> StructuredLogger:
    """
    Build the ``aetherra.<name>`` logger with a stdout handler and, when file
    logging is on, a ``<name>.log`` rotating handler.
    """
    logging.setLoggerClass(StructuredLogger)
    logger = logging.getLogger(f"aetherra.{name}")
    logging.setLoggerClass(logging.Logger)

    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.handlers = []
    logger.propagate = False

    if settings.LOG_TO_FILE if log_to_file is None else log_to_file:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, f"{name}.log"),
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS
        )
        file_handler.setFormatter(JsonFormatter() if json_format else LINE_FORMAT)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(LINE_FORMAT)
    logger.addHandler(console_handler)

    return logger


api_logger = setup_logger("api", settings.API_LOG_LEVEL)
auth_logger = setup_logger("auth", settings.AUTH_LOG_LEVEL)
db_logger = setup_logger("db", settings.DB_LOG_LEVEL)
ai_logger = setup_logger("ai", settings.AI_LOG_LEVEL, json_format=True)


def configure_logger() -> StructuredLogger:
    """Logger used by the app factory for startup and exception handlers."""
    return setup_logger("app", settings.API_LOG_LEVEL)


def _duration_ms(seconds: float) -> float:
    return round(seconds * 1000, 2)


def log_api_request(
    request_id: str,
    method: str,
    path: str,
    status_code: int,
    processing_time: float,
    user_id: Optional[str] = None,
    error: Optional[str] = None
):
    data = {
        "request_id": request_id,
        "method": method,
        "path": path,
        "status_code": status_code,
        "processing_time_ms": _duration_ms(processing_time),
        "user_id": user_id,
    }
    if error:
        data["error"] = error
    level = logging.ERROR if error or status_code >= 500 else logging.INFO
    api_logger.structured(level, f"{method} {path} -> {status_code} ({data['processing_time_ms']} ms)", data)


def log_auth_event(
    event_type: str,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    success: bool = True,
    error: Optional[str] = None,
    ip_address: Optional[str] = None
):
    """Register / login outcome; failures are warnings, never errors."""
    data = {
        "event_type": event_type,
        "user_id": user_id,
        "email": email,
        "success": success,
        "ip_address": ip_address,
    }
    if error:
        data["error"] = error
    outcome = "succeeded" if success else f"failed ({error})" if error else "failed"
    auth_logger.structured(logging.INFO if success else logging.WARNING, f"Auth {event_type} {outcome}", data)


def log_ai_request(
    engine: str,
    prompt_type: str,
    tokens: int,
    processing_time: float,
    user_id: Optional[str] = None,
    error: Optional[str] = None
):
    """One provider call. ``tokens`` is a whitespace word count, not a billing figure."""
    data = {
        "engine": engine,
        "prompt_type": prompt_type,
        "tokens": tokens,
        "processing_time_ms": _duration_ms(processing_time),
        "user_id": user_id,
    }
    if error:
        data["error"] = error
        ai_logger.structured(logging.ERROR, f"AI {prompt_type} via {engine} failed", data)
    else:
        ai_logger.structured(logging.INFO, f"AI {prompt_type} via {engine}", data)
