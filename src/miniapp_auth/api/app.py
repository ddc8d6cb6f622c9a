"""Factory for constructing the HTTP API application."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..logging import configure_logging
from .dependencies import build_container, set_container
from .routers import auth

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type", "telegram-init-data"]


def create_api() -> FastAPI:
    """Produce the FastAPI application instance to be mounted by an ASGI server."""
    container = build_container()
    set_container(container)

    configure_logging(
        level=container.config.log_level,
        loki_url=container.config.loki_url,
        loki_labels=container.config.loki_labels,
    )

    app = FastAPI(
        title="Mini App Auth API",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(container.config.cors_allow_origins),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    @app.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        """Simple readiness probe."""
        return {"status": "ok"}

    app.include_router(auth.router, prefix="/api")
    return app
