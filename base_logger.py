# SPDX-License-Identifier: GPL-3.0-only
"""Logger factory shared by the service, scripts and tests."""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def _configure_root():
    global _configured
    if _configured:
        return

    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    _configured = True


def get_logger(name=None):
    """
    Get a configured logger.

    Args:
        name (str, optional): Logger name, usually the module's __name__.

    Returns:
        logging.Logger: The logger instance.
    """
    _configure_root()
    return logging.getLogger(name)
