"""
Logging configuration for Zenly Platform Service

Console output is colored in development and plain elsewhere; production
(or an explicit ``log_file``) adds a size-rotated JSON file. Every record
carries the id of the request that produced it, and credential-looking
fields passed through ``extra=`` are masked before they are written.
"""

import os
import sys
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from common.config import get_settings

settings = get_settings()

CONSOLE_FORMAT = "%(asctime)s - %(name)s - [%(request_id)s] %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
REDACTED = "***"

# Set by RequestIDMiddleware for the lifetime of one HTTP request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

SENSITIVE_KEYS = {
    "password", "currentpassword", "newpassword", "passwordhash",
    "accesstoken", "refreshtoken", "token", "authorization",
}

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "request_id"}

_configured: Dict[str, logging.Logger] = {}


def redact(value: Any) -> Any:
    """Mask credential fields in nested dicts/lists"""
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).replace("_", "").lower() in SENSITIVE_KEYS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id ("-" outside a request)"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the rotating file handler"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            entry.update(redact(extra))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Development console formatter that colors the level name"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if not color:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def parse_size(max_size: str) -> int:
    """"100MB" / "1GB" / plain bytes"""
    units = {"KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}
    suffix = max_size[-2:].upper()
    if suffix in units:
        return int(max_size[:-2]) * units[suffix]
    return int(max_size)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    formatter_cls = ColoredFormatter if settings.is_development else logging.Formatter
    handler.setFormatter(formatter_cls(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RequestContextFilter())
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    log_dir = os.path.dirname(path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    handler = RotatingFileHandler(
        filename=path,
        maxBytes=parse_size(settings.LOG_MAX_SIZE),
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestContextFilter())
    return handler


def setup_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Build (or rebuild) a named logger

    Args:
        name: Logger name
        level: Log level name, defaults to ``LOG_LEVEL``
        log_file: JSON log path; production always writes ``LOG_FILE_PATH``

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper())

    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers = [_console_handler(log_level)]

    if settings.is_production or log_file:
        logger.addHandler(_file_handler(log_file or settings.LOG_FILE_PATH, log_level))

    _configured[name] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, configured once per name"""
    if name in _configured:
        return _configured[name]
    return setup_logger(name)


def log_api_request(logger: logging.Logger, method: str, path: str, **fields):
    logger.info(
        f"--> {method} {path}",
        extra={"http_method": method, "http_path": path, **fields}
    )


def log_api_response(logger: logging.Logger, status_code: int, duration_ms: float, **fields):
    level = logging.WARNING if status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"<-- {status_code} in {duration_ms:.1f}ms",
        extra={"http_status": status_code, "duration_ms": round(duration_ms, 2), **fields}
    )


def log_error_with_context(logger: logging.Logger, error: Exception, context: dict):
    """Log an unhandled error with the request details that led to it"""
    logger.error(
        f"Unhandled {type(error).__name__}: {error}",
        exc_info=error,
        extra={"error_context": redact(context)}
    )


def configure_root_logger():
    """Plain stdout handler for third-party loggers (uvicorn, motor, socketio)"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    root.handlers = [_console_handler(root.level)]


configure_root_logger()
