from __future__ import annotations

from fastapi import FastAPI

from amoform.core.config import settings
from amoform.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        debug=settings.app_debug,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Register routes
    from amoform.api.v1.router import api_v1_router

    app.include_router(api_v1_router, prefix="/api/v1")

    return app


app = create_app()
