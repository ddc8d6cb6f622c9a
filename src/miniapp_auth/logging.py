"""Helpers for configuring logging across the service."""

from __future__ import annotations

import logging
import socket
import sys

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured_handlers: list[logging.Handler] = []
_logging_level: int = logging.INFO
# Override noisy third-party loggers (match exact name or dotted prefix)
_LOGGER_LEVEL_OVERRIDES: dict[str, int] = {
    "uvicorn.access": logging.WARNING,
}


class _NoHTTPLibLogsFilter(logging.Filter):
    """Keep urllib3/requests records out of Loki to avoid recursive pushes."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(("urllib3", "requests"))


def configure_logger(logger: logging.Logger) -> None:
    """
    Apply the configured handlers to a specific logger instance.

    Safe to call multiple times; existing handlers are replaced.
    """
    if not _configured_handlers:
        return

    logger.handlers.clear()
    for handler in _configured_handlers:
        logger.addHandler(handler)

    level_override: int | None = None
    for name, override in _LOGGER_LEVEL_OVERRIDES.items():
        if logger.name == name or logger.name.startswith(f"{name}."):
            level_override = override
            break

    logger.setLevel(level_override if level_override is not None else _logging_level)
    # Handlers are attached directly, propagating would duplicate records
    logger.propagate = False


def _build_loki_handler(
    loki_url: str,
    labels: dict[str, str],
    level: int,
) -> logging.Handler | None:
    try:
        from logging_loki import LokiHandler  # type: ignore[import-not-found]
    except ImportError:
        logging.getLogger(__name__).warning(
            "python-logging-loki is not installed. Loki logging disabled. "
            "Install with: pip install 'miniapp-auth[loki]'"
        )
        return None

    labels.setdefault("host", socket.gethostname())
    labels.setdefault("job", "miniapp-auth")

    # urllib3 logging must be quiet before the handler exists, or an unreachable
    # Loki endpoint logs about itself forever
    for noisy in ("urllib3", "requests"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
        logging.getLogger(noisy).propagate = False

    handler = LokiHandler(url=loki_url, tags=labels, version="1", auth=None)
    handler.setLevel(level)
    handler.addFilter(_NoHTTPLibLogsFilter())
    return handler


def configure_logging(
    level: str,
    loki_url: str | None = None,
    loki_labels: dict[str, str] | None = None,
) -> None:
    """
    Configure root logging with the provided level and a consistent format.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        loki_url: Optional Loki endpoint URL (e.g., http://loki:3100/loki/api/v1/push)
        loki_labels: Optional labels for Loki logs (e.g., {"environment": "production"})
    """
    resolved_level = getattr(logging, level.upper(), None)
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    handlers.append(console_handler)

    if loki_url:
        try:
            loki_handler = _build_loki_handler(loki_url, dict(loki_labels or {}), resolved_level)
        except Exception:
            logging.getLogger(__name__).exception("Failed to configure Loki handler")
            loki_handler = None
        if loki_handler is not None:
            handlers.append(loki_handler)

    global _configured_handlers, _logging_level
    _configured_handlers = handlers.copy()
    _logging_level = resolved_level

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved_level)
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    logging.captureWarnings(True)

    from .logger_factory import get_logger, get_pending_loggers, mark_logging_configured

    logger = get_logger(__name__)
    logger.info("Logging configured (level=%s)", logging.getLevelName(resolved_level))
    if len(handlers) > 1:
        logger.info("Loki logging enabled (url=%s, labels=%s)", loki_url, loki_labels or {})

    # Module loggers are created at import time, before this function runs
    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name != "root" and not name.startswith(("urllib3", "requests")):
            configure_logger(logging.getLogger(name))

    mark_logging_configured()

    pending = get_pending_loggers()
    if pending:
        logger.debug(
            "Detected %d logger(s) created before configure_logging: %s",
            len(pending),
            ", ".join(pending[:5]) + ("..." if len(pending) > 5 else ""),
        )
