"""
Structured logging for the engine, built on structlog.

Events go to stderr by default so command output on stdout stays
parseable. Training and prediction bind ``model_id`` and ``algorithm``
through log_context() so every event of one run can be grouped.
"""

import logging
import sys
from typing import TYPE_CHECKING, Any, TextIO

import structlog

if TYPE_CHECKING:
    from tabml.config.settings import LoggingConfig


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structured logging for the engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, emit one JSON object per event.
        stream: Where events are written (stderr when None).
    """
    stream = stream if stream is not None else sys.stderr
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=stream, level=log_level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        is_tty = hasattr(stream, "isatty") and stream.isatty()
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=is_tty)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: "LoggingConfig", stream: TextIO | None = None) -> None:
    """Apply the ``logging`` section of an EngineConfig."""
    configure_logging(settings.level, settings.json_output, stream)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Configured structlog logger.
    """
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """
    Bind values to every event logged inside the block.

    Example:
        with log_context(model_id="a1b2c3", algorithm="kmeans"):
            log.info("Fitting")  # carries model_id and algorithm
    """
    return structlog.contextvars.bound_contextvars(**kwargs)
