"""
Shared logging configuration for the HTTP Status Lab.

Every event is rendered as one JSON line on stdout. Request-scoped fields
(request id, authenticated user, rate-limit client) live in context
variables so that any logger inside a request picks them up without being
handed a bound logger.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
client_id_var: ContextVar[Optional[str]] = ContextVar("client_id", default=None)

# Event key -> context variable carrying it
CORRELATION_FIELDS: Dict[str, ContextVar] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "client_id": client_id_var,
}

Processor = Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured JSON logging for a service."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            service_context(service_name),
            add_correlation_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def service_context(service_name: str) -> Processor:
    """Processor stamping the service and, for "<service>.<component>" loggers, the component."""

    def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        prefix, _, component = event_dict.get("logger", "").partition(".")
        if component and prefix == service_name:
            event_dict.setdefault("component", component)
        return event_dict

    return add_service_context


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy every set correlation field into the event."""
    for key, var in CORRELATION_FIELDS.items():
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request id, generating one when the caller sent none."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_user_context(user_id: Optional[str] = None, client_id: Optional[str] = None) -> None:
    """Bind the authenticated user and/or the rate-limit client."""
    if user_id:
        user_id_var.set(user_id)
    if client_id:
        client_id_var.set(client_id)


def clear_context() -> None:
    for var in CORRELATION_FIELDS.values():
        var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
