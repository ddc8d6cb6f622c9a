"""Telegram Mini App initData authentication service."""

from .services.init_data import InitDataVerifier, verify_init_data

__all__ = ["InitDataVerifier", "verify_init_data"]
