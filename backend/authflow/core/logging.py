"""
Structured logging for the login flow.

Every event carries the request's correlation id; OAuth secrets that end up
in an event under a known key are truncated before rendering.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

correlation_id_var: ContextVar[Optional[str]] = ContextVar("authflow_correlation_id", default=None)

SENSITIVE_KEYS = frozenset({
    "access_token", "refresh_token", "client_secret", "code", "code_verifier",
    "pkce_verifier", "csrf_token", "state", "secret", "cookie", "session_id",
})

SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

EventDict = Dict[str, Any]


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def mask_sensitive_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Truncate OAuth secrets that slipped into a log call."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > 8:
            event_dict[key] = value[:4] + "..."
        elif value is not None:
            event_dict[key] = "[REDACTED]"
    return event_dict


def _route_server_loggers(level: int) -> None:
    # uvicorn installs its own handlers; send everything through the root logger instead
    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = []
        server_logger.propagate = True
        server_logger.setLevel(level)


def configure_logging(log_level: str = "INFO", debug: bool = False) -> None:
    """Configure structlog with correlation ids and secret masking.

    ``debug`` switches the JSON renderer for the console one.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    _route_server_loggers(level)

    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_correlation_id,
            mask_sensitive_values,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    """Current correlation id; a fresh one is bound when none is set."""
    correlation_id = correlation_id_var.get()
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
        set_correlation_id(correlation_id)
    return correlation_id


logger = structlog.get_logger("authflow")


def get_logger(name: Optional[str] = None):
    return structlog.get_logger(name) if name else logger
