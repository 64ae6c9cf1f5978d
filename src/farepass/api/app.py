"""
FastAPI application for the rider web app.

`create_app()` builds the app from settings; the module-level `app` is what
`farepass serve` / `uvicorn farepass.api.app:app` runs. Trip logic lives in
`farepass.ledger`, request handling in `farepass.api.routes`.
"""

from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from farepass.config.settings import Settings, get_settings
from farepass.core.logging import configure_logging

from .routes import router

_LOCAL_ORIGINS = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=f"{settings.app.name} API", version="0.1.0")

    # Explicit origins replace the localhost allowance instead of adding to it.
    origins = settings.api.cors_origins
    origin_regex = _LOCAL_ORIGINS if settings.api.cors_allow_local and not origins else None
    if origins or origin_regex:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_origin_regex=origin_regex,
            allow_credentials=False,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    app.include_router(router)
    return app


configure_logging()
app = create_app()
