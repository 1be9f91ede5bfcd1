"""Logging configuration for the pipeline and command line entry points.

Library modules log through the standard ``logging`` module; the pipeline
emits structured events through structlog. Both end up on stderr so that
stdout stays free for command output.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging and structlog JSON events to stderr at ``level``."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
