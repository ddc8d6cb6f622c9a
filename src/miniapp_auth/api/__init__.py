"""HTTP API for Telegram Mini App authentication."""

from .app import create_api

__all__ = ["create_api"]
