"""HTTP status endpoints for caches reporting to the status service."""

from __future__ import annotations

from fastapi import FastAPI

from . import status

API_VERSION = "0.1.0"


def create_app() -> FastAPI:
    app = FastAPI(title="Expiring Cache Status", version=API_VERSION)
    app.include_router(status.router)
    return app


__all__ = ["create_app", "status"]
