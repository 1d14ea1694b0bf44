"""
FastAPI backend for label designs

Serves the merged local/cloud design list, saving, cloud sync and
print-ready export.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from price_tag import __version__
from price_tag.config.settings import AppConfig, load_config
from price_tag.errors import ExportFailure, NotAuthenticated, ParseFailure, RecordNotFound, StorageFailure
from price_tag.export.pipeline import ExportPipeline
from price_tag.storage.local_store import LocalStore

log = logging.getLogger(__name__)

# Status code per error class; the client picks its recovery from it
ERROR_STATUS = (
    (NotAuthenticated, 401),
    (RecordNotFound, 404),
    (ParseFailure, 422),
    (ExportFailure, 422),
    (StorageFailure, 503),
)


def create_app(config: Optional[AppConfig] = None, font_path: Optional[str] = None) -> FastAPI:
    config = config or load_config()

    app = FastAPI(
        title="Price Tag Label API",
        description="Label design storage, cloud sync and print-ready export",
        version=__version__,
    )
    app.state.config = config
    app.state.local = LocalStore(config.data_dir)
    app.state.pipeline = ExportPipeline()
    app.state.font_path = font_path or os.getenv("PRICE_TAG_FONT") or None

    # CORS middleware - allow the editor frontend to communicate
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",  # Next.js dev server
            "http://localhost:5173",  # Vite default port
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _make_handler(status_code: int):
        async def handler(request: Request, exc: Exception):
            log.warning("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(
                status_code=status_code,
                content={"success": False, "error": type(exc).__name__, "detail": str(exc)},
            )
        return handler

    for exc_class, status_code in ERROR_STATUS:
        app.add_exception_handler(exc_class, _make_handler(status_code))

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Price Tag Label API",
            "version": __version__,
            "docs": "/docs",
            "status": "running"
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "services": {
                "api": "running",
                "local_store": str(config.data_dir),
                "cloud_store": "configured" if config.remote_configured else "not configured"
            }
        }

    from web.backend.api import designs, export_api

    app.include_router(designs.router, prefix="/api/designs", tags=["designs"])
    app.include_router(export_api.router, prefix="/api/export", tags=["export"])
    return app


if __name__ == "__main__":
    import uvicorn
    print("🚀 Starting Price Tag Label API...")
    print("📚 API Documentation: http://localhost:8000/docs")
    uvicorn.run(
        "web.backend.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
