from __future__ import annotations

import logging

import structlog

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def configure_logging(level: str = "info") -> None:
    """Console structlog output filtered at ``level``; simulation lifecycle events log at debug."""
    level = level.lower().strip()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_number(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def level_number(level: str) -> int:
    return getattr(logging, level.upper())
