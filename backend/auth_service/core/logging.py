"""Structured logging setup.

Modules log through ``logging.getLogger(__name__)``; the HTTP boundary
logs through ``structlog.get_logger()``. Both end up on the stdlib root
handler configured here.

Never log plaintext credentials, hashes, one-time codes or tokens.
Identifiers may be logged.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and structlog.

    Args:
        level: Root log level name (e.g. "INFO", "DEBUG").
    """
    logging.basicConfig(
        format="%(message)s",
        level=level.upper(),
        handlers=[logging.StreamHandler()],
    )
    # Per-request access lines are noise next to the structured events
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer()
            if sys.stderr.isatty()
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
