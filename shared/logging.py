"""
Structured logging for the Places cache proxy.

Every log line is a JSON object carrying the emitting service, the request's
correlation id and, while a details request is being resolved, the place id.
API keys travel in query strings, so they are masked before rendering.
"""

import logging
import re
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
place_id_var: ContextVar[Optional[str]] = ContextVar('place_id', default=None)

_API_KEY_PATTERN = re.compile(r"(\bkey=)[^&\s'\"]+")
_REDACTED = r"\1***"


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structlog JSON output on top of stdlib logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context,
            add_request_context,
            redact_api_keys,
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


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # Logger names are "<service>.<component>"
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]
    return event_dict


def add_request_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the correlation id and the place being resolved, when set."""
    request_id = request_id_var.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)

    place_id = place_id_var.get()
    if place_id:
        event_dict.setdefault("place_id", place_id)

    return event_dict


def redact_api_keys(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask ``key=...`` query parameters in string values such as URLs and error text."""
    for name, value in event_dict.items():
        if isinstance(value, str) and "key=" in value:
            event_dict[name] = _API_KEY_PATTERN.sub(_REDACTED, value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request's correlation id, generating one when the caller sent none."""
    if not request_id:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_place_context(place_id: Optional[str] = None) -> None:
    if place_id:
        place_id_var.set(place_id)


def clear_context() -> None:
    request_id_var.set(None)
    place_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
