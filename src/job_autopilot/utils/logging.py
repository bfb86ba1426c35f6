"""Structured logging configuration using structlog."""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from rich.logging import RichHandler

from job_autopilot.config import Settings, settings as default_settings

# Libraries whose debug output drowns the pipeline's own events
_NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "httpx", "httpcore")


def configure_logging(config: Optional[Settings] = None) -> None:
    """
    Configure structured logging.

    Events are rendered by structlog and written through the standard
    library: JSON lines on stdout normally, rich console output in debug
    mode.
    """
    config = config or default_settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.debug:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, markup=False, show_path=False)
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        handler = logging.StreamHandler(sys.stdout)
        renderer = structlog.processors.JSONRenderer()

    # Configure standard library logging
    logging.basicConfig(format="%(message)s", level=level, handlers=[handler], force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def job_context(job_id: str, candidate_id: str, listing_id: str) -> Iterator[None]:
    """Attach an apply job's identifiers to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(
        job_id=job_id,
        candidate_id=candidate_id,
        listing_id=listing_id
    ):
        yield
