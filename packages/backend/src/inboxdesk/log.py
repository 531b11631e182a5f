"""structlog setup shared by the API server and the CLI.

Learn: Log lines go to stderr so command output on stdout stays clean
(`inboxdesk resolve` prints only the scope). Events below the configured
level are dropped by the bound logger before any processor runs.
"""

import logging
import sys

import structlog

from inboxdesk.config import Settings

_configured = False


def log_level_for(settings: Settings) -> int:
    """DEBUG when settings.debug is on, otherwise settings.log_level."""
    if settings.debug:
        return logging.DEBUG
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog once per process."""
    global _configured
    if _configured:
        return
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level_for(settings)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
    _configured = True
