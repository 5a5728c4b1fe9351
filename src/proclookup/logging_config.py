"""
Python logging configuration for proclookup.

Log records go to stderr so they never mix with lookup results on stdout.
"""

import logging
import os
import sys

LOG_LEVEL_ENV = "PROCLOOKUP_LOG_LEVEL"
DEFAULT_LEVEL = "WARNING"


def resolve_level(level: str | None = None) -> int:
    """
    Resolve a log level name, reading PROCLOOKUP_LOG_LEVEL when none is given.

    Unknown names fall back to WARNING.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, DEFAULT_LEVEL)
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        return logging.WARNING
    return resolved


def setup_logging(level: str | None = None) -> None:
    """
    Configure Python logging for the command line tool.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to the
            PROCLOOKUP_LOG_LEVEL environment variable, then WARNING.

    Log Format:
        YYYY-MM-DD HH:MM:SS [LEVEL] Message
    """
    logging.basicConfig(
        level=resolve_level(level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
