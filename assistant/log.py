from __future__ import annotations

import logging
import sys

import structlog


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.WARNING


def setup_logging(level: int | str = "WARNING") -> None:
    """Configure structlog for JSON logs on stderr.

    stdout is reserved for the terminal display.
    """
    min_level = _resolve_level(level)
    logging.basicConfig(
        format="%(message)s",
        level=min_level,
        stream=sys.stderr,
    )

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None):
    """Return a structlog logger bound to the provided name."""
    return structlog.get_logger(name or "move_assist")


__all__ = ["setup_logging", "get_logger"]
