"""Logging setup for applications embedding Budget Mate.

The library modules only call ``structlog.get_logger()``; the host calls
``configure_logging`` once at startup to apply the configured level and
output format.
"""

import logging
from typing import Optional

import structlog

from budgetmate_sync.config import BudgetMateConfig


def configure_logging(config: Optional[BudgetMateConfig] = None) -> None:
    """
    Configure structlog from the root configuration.

    Events below ``config.log_level`` are dropped. Production renders one
    JSON object per line; other environments use the console renderer.

    Args:
        config: Root configuration; loaded from the environment when omitted
    """
    config = config or BudgetMateConfig()
    renderer = (
        structlog.processors.JSONRenderer()
        if config.is_production
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(config.log_level)),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


__all__ = ["configure_logging"]
