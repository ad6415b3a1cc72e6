"""
structlog setup shared by the API and the command-line scripts.
"""

import logging

import structlog

from backend.app.config import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Configure structlog for JSON output on stdout, filtered at `level`."""
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
    )
