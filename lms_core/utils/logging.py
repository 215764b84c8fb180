# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

structlog events are rendered to a string and handed to the standard
library logger of the same name, so they share one stdout handler with
the domain services, which log through logging.getLogger(__name__).
Rendering is JSON outside development and colored console output in
development or debug mode.

Example:
    >>> from lms_core.utils.logging import setup_logging, get_logger
    >>> from lms_core.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> with bound_context(tenant_id="t-1", user_id="prof-1"):
    ...     logger.info("exam_graded", subscription_id="123", status="passed")
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from lms_core.core.config.settings import Settings

NOISY_LOGGERS = ("sqlalchemy", "aiosqlite", "asyncio", "alembic")


def _renderer(settings: "Settings") -> list[Processor]:
    if settings.is_development or settings.debug:
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def setup_logging(settings: "Settings") -> None:
    """Configure structlog and the standard library root logger.

    Args:
        settings: Application settings providing log_level, debug and
            environment.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            *_renderer(settings),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("lms_core").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name."""
    return structlog.get_logger(name)


@contextmanager
def bound_context(**kwargs: object) -> Iterator[None]:
    """Attach fields such as tenant_id and user_id to structlog events in the block.

    Fields bound before the block are restored on exit.

    Args:
        **kwargs: Key-value pairs to bind to the logging context.
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
