"""Structured logging setup built on structlog.

Every module obtains its logger through ``get_logger`` and emits snake_case
events with keyword context, e.g.::

    logger = get_logger(__name__, component="IndicatorCalculator")
    logger.info("indicators_calculated", symbol="BTC", rsi=54.2)
"""

import logging
import sys
from typing import Any, Literal

import structlog

FormatType = Literal["json", "text"]


def setup_logging(level: str = "INFO", format_type: FormatType = "text") -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        format_type: "json" for machine-readable output, "text" for a console renderer
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
        force=True,
    )

    renderer: Any
    if format_type == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str, **context: Any) -> Any:
    """Get a structlog logger bound to a module name and optional context.

    Args:
        name: Logger name, usually ``__name__``
        **context: Extra key/value pairs bound to every event (e.g. component)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name, **context)
