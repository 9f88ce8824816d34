"""Structured logging configuration for the NTP client.

Every record from a client is tagged with the server it talks to
(``destination="host:port"``). Enum values such as ``SyncStatus`` are logged
by value so the JSON output reads ``"status": "synced"``.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, MutableMapping, Optional

import structlog

if TYPE_CHECKING:
    from ntpsync.config.settings import Settings


def destination_of(host: str, port: int) -> str:
    return f"{host}:{port}"


def _enum_values(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def setup_logging(
    settings: Optional["Settings"] = None,
    level: Optional[str] = None,
    component: Optional[str] = None,
    log_path: Optional[str | Path] = None,
) -> structlog.BoundLogger:
    """Configure structured logging and return a logger bound to the destination.

    ``level`` overrides ``settings.log_level``; with neither, INFO is used.
    """
    level = level or (settings.log_level if settings else "INFO")

    handlers: list[logging.Handler] = []
    if log_path:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    else:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="ISO"),
            _enum_values,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("ntpsync")
    if component:
        logger = logger.bind(component=component)
    if settings is not None:
        logger = logger.bind(destination=destination_of(settings.destination_host, settings.destination_port))
    return logger


def get_logger(name: str, host: Optional[str] = None, port: Optional[int] = None) -> structlog.BoundLogger:
    logger = structlog.get_logger(name)
    if host is not None:
        logger = logger.bind(destination=destination_of(host, port) if port is not None else host)
    return logger
