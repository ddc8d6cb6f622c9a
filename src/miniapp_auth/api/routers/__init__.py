"""FastAPI routers for the HTTP API."""

from . import auth

__all__ = ["auth"]
