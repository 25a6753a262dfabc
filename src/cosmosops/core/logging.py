"""structlog configuration shared by the CLI and the core."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

_LOG_LEVEL_ENV = "COSMOSOPS_LOG_LEVEL"
_LOG_JSON_ENV = "COSMOSOPS_LOG_JSON"
_DEFAULT_LOG_LEVEL = "WARNING"


def _log_level() -> int:
    """Return the configured log level, falling back to WARNING."""
    raw = os.getenv(_LOG_LEVEL_ENV, _DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.WARNING


def _json_enabled() -> bool:
    return os.getenv(_LOG_JSON_ENV, "").strip().lower() in {"1", "true", "yes"}


def setup_logging() -> None:
    """Configure structlog (and stdlib logging for the Azure SDK) to stderr."""
    min_level = _log_level()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if _json_enabled():
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # The Azure SDK logs through stdlib logging; keep it at the same level.
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=min_level)
    logging.getLogger("azure").setLevel(max(min_level, logging.WARNING))
