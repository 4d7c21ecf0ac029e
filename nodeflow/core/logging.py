"""structlog setup for the engine.

Events are rendered by structlog and emitted through stdlib logging on
stderr (plus an optional file), leaving stdout to the CLI's JSON output.
"""

import logging
import sys
from typing import List, Optional

import structlog

from nodeflow.core.config import Settings


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(settings: Settings) -> None:
    """Route structlog events through stdlib handlers at the configured level."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(level=settings.log_level, format="%(message)s",
                        handlers=handlers, force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _renderer(settings.log_format),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **fields) -> None:
    """Emit one ``Operation completed`` event with the elapsed seconds."""
    logger.info("Operation completed", operation=operation,
                execution_time_seconds=round(end_time - start_time, 4), **fields)


def log_cache_operation(logger: structlog.BoundLogger, operation: str, key: str,
                        hit: Optional[bool] = None, **fields) -> None:
    if hit is not None:
        fields["cache_hit"] = hit
    logger.debug("Cache operation", operation=operation, cache_key=key, **fields)
