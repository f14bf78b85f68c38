"""
Memonex Guard - Structured Logging

structlog setup driven by Settings (log_level, log_json, app_name, app_env),
a processor that masks secret-bearing keys bound by callers, and a
duration helper used around scans.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from memonex import __version__
from memonex.config import get_settings

REDACTED = "[REDACTED]"

# Substrings of keys whose values never reach a sink
SECRET_KEY_MARKERS = (
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "private_key",
    "privatekey",
    "signing_key",
    "aes_key",
    "mnemonic",
    "seed_phrase",
)

MAX_MASK_DEPTH = 10


def _is_secret_key(key: Any) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in SECRET_KEY_MARKERS)


def _mask(value: Any, depth: int) -> Any:
    if depth > MAX_MASK_DEPTH:
        return value
    if isinstance(value, Mapping):
        return {k: REDACTED if _is_secret_key(k) else _mask(v, depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_mask(item, depth + 1) for item in value]
    return value


def mask_secret_keys(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace values under secret-looking keys, walking nested dicts and lists."""
    masked: EventDict = _mask(event_dict, 0)
    return masked


def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag each event with the service name, version and environment."""
    settings = get_settings()
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("version", __version__)
    event_dict.setdefault("env", settings.app_env)
    return event_dict


def build_processors(json_output: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_info,
        mask_secret_keys,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root handler.

    Arguments left as None come from settings: `log_level`, and `log_json`
    (production always logs JSON).
    """
    settings = get_settings()
    if level is None:
        level = settings.log_level
    if json_output is None:
        json_output = settings.log_json or settings.app_env == "production"

    structlog.configure(
        processors=build_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=getattr(logging, level.upper()))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    bound: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return bound


@contextmanager
def log_duration(logger: Any, operation: str, level: str = "info", **context: Any) -> Iterator[None]:
    """
    Log `<operation>_completed` with `duration_ms`, or `<operation>_failed`
    at error level and re-raise.
    """
    started = time.monotonic()
    try:
        yield
    except Exception as e:
        logger.error(
            f"{operation}_failed",
            duration_ms=round((time.monotonic() - started) * 1000, 2),
            error=str(e),
            **context,
        )
        raise
    getattr(logger, level)(
        f"{operation}_completed",
        duration_ms=round((time.monotonic() - started) * 1000, 2),
        **context,
    )


__all__ = [
    "add_service_info",
    "build_processors",
    "configure_logging",
    "get_logger",
    "log_duration",
    "mask_secret_keys",
]
