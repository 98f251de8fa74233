"""
Logging setup with request-id injection.

    setup_logging(settings)                  # once, at startup
    token = set_request_id("b1c2...")        # per request, from middleware
    ...
    reset_request_id(token)
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone

_request_id_var: ContextVar[str] = ContextVar("salesbridge_request_id", default="-")

_initialized = False

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def set_request_id(request_id: str) -> Token[str]:
    return _request_id_var.set(request_id or "-")


def reset_request_id(token: Token[str]) -> None:
    _request_id_var.reset(token)


def get_request_id() -> str:
    return _request_id_var.get()


class RequestIdFilter(logging.Filter):
    """Stamps every record with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-") or "-",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_logs: bool = False, force: bool = False) -> logging.Logger:
    """
    Configure the "salesbridge" logger tree and uvicorn's loggers.

    Safe to call repeatedly; only the first call (or force=True) applies.
    """
    global _initialized

    root = logging.getLogger("salesbridge")
    if _initialized and not force:
        return root

    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter: logging.Formatter = (
        JSONFormatter() if json_logs else logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())

    root.setLevel(log_level)
    root.handlers = [handler]
    root.propagate = False

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        server_logger = logging.getLogger(name)
        server_logger.handlers = [handler]
        server_logger.propagate = False

    for noisy in ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _initialized = True
    return root


__all__ = (
    "RequestIdFilter",
    "JSONFormatter",
    "set_request_id",
    "reset_request_id",
    "get_request_id",
    "setup_logging",
)
