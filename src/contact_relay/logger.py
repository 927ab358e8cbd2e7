"""Logging utilities for the contact relay.

This module provides a centralized logging helper. The actual logging setup
(level, handlers, format) is configured via ``logging.basicConfig()`` in the
entry point to avoid duplicate handlers.

Example:
    Typical usage in a module::

        from contact_relay.logger import get_logger

        logger = get_logger("Dispatcher")
        logger.info("Message accepted")
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "ContactRelay") -> logging.Logger:
    """Retrieve a logger instance bound to ``name``.

    Handlers and formatters are not configured here; see
    :func:`configure_logging`.
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the running process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )


def mask_address(address: str | None) -> str:
    """Mask an email address for diagnostic output (``abc***@domain``)."""
    if not address:
        return "not set"
    local, sep, domain = address.partition("@")
    if not sep:
        return f"{local[:3]}***"
    return f"{local[:3]}***@{domain}"
