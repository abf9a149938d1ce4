"""
FastAPI App Factory - Panel Sync HTTP surface

Connection routes (ports, connect, status, history) and model routes
(model, scheduler, events, manual poll), all under /api.
"""

from typing import Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dependencies import get_app_state
from core.logger import log_critical
from .routes import (
    connection_router,
    model_router,
)


DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def create_app(cors_origins: Optional[Sequence[str]] = None) -> FastAPI:
    """Create the app with both routers mounted under /api."""

    app = FastAPI(
        title="Panel Sync API",
        description="Mirrored controller object model for panel UIs",
        version="1.0.0",
    )

    # Panel UI dev server; must be added before any route runs
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins or DEFAULT_CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def engine_error_handler(request: Request, exc: Exception):
        """Unhandled engine or transport error: log it with the sync state."""
        state = get_app_state()
        context = {
            "path": request.url.path,
            "connected": state.is_connected,
            "polling": state.is_polling,
            "error": repr(exc),
        }
        log_critical("Request failed", context)
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "path": request.url.path,
                "connected": state.is_connected,
            },
        )

    app.include_router(connection_router, prefix="/api")
    app.include_router(model_router, prefix="/api")

    return app
