"""Logging setup for the server process.

All diagnostics go to stderr (and optionally a file) with an ``[MCP]``
prefix; stdout is left to the stdio protocol stream.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [MCP] %(levelname)s %(name)s: %(message)s"

# Package logger; module loggers are its children
PACKAGE_LOGGER = "mcp_local_server"


def configure_logging(level: int | str = logging.INFO, log_file: str | Path | None = None) -> None:
    """Send package diagnostics to stderr and optionally to a file.

    Stdout is never used: under the stdio transport it carries the
    protocol stream.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.setLevel(level)
    logger.propagate = False
