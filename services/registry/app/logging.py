from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


# Masked before rendering.
_SECRET_FIELDS = ("access_key", "deployment_key")


def _mask(value: str) -> str:
    if len(value) <= 4:
        return "****"
    return value[:4] + "****"


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for field in _SECRET_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = _mask(value)
    return event_dict


def configure_logging(log_level: str, service_name: str = "registry") -> None:
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level.upper())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level.upper())),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)


logger = structlog.get_logger()
