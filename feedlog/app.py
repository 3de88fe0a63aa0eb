"""
FastAPI application entry point for the feeding log backend.
"""

from __future__ import annotations

from fastapi import FastAPI

from feedlog.config import get_settings
from feedlog.errors import register_error_handlers
from feedlog.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Feedlog Backend (FastAPI)", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    register_error_handlers(app)
    return app


app = create_app()
