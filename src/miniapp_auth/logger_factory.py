"""Centralized logger factory so every module logger follows the configured handlers."""

from __future__ import annotations

import logging

_logging_configured = False
_pending_loggers: dict[str, logging.Logger] = {}


def mark_logging_configured() -> None:
    """
    Mark that logging has been configured.

    Called by configure_logging() once handlers are installed.
    """
    global _logging_configured
    _logging_configured = True


def is_logging_configured() -> bool:
    """Check if logging has been configured."""
    return _logging_configured


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger that propagates to the root handlers.

    Loggers are usually created at import time, before configure_logging()
    runs; those are remembered so they can be reconfigured afterwards.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Example:
        ```python
        from miniapp_auth.logger_factory import get_logger

        logger = get_logger(__name__)
        logger.info("Verifier ready")
        ```
    """
    logger = logging.getLogger(name)

    if name != "root":
        logger.propagate = True
        logger.handlers.clear()
        if logger.level != logging.NOTSET:
            logger.level = logging.NOTSET

    if not _logging_configured and name not in _pending_loggers:
        _pending_loggers[name] = logger

    return logger


def get_pending_loggers() -> list[str]:
    """Names of loggers created before configure_logging() was called."""
    return list(_pending_loggers.keys())
