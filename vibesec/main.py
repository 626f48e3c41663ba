from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vibesec.api import fix_routes, scan_routes
from vibesec.core.containers import build_services
from vibesec.core.errors import VibeSecError
from vibesec.core.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "0.1.0"

TAGS = [
    {
        "name": "scans",
        "description": "Submit repository scans, follow their progress and fetch results.",
    },
    {
        "name": "fixes",
        "description": "Generate versioned structured fixes for findings and apply them as pull requests.",
    },
    {
        "name": "health",
        "description": "Liveness check.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await app.state.services.scheduler.start()
    try:
        yield
    finally:
        await app.state.services.scheduler.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="VibeSec Scan Service",
        version=VERSION,
        description="Asynchronous repository security scans with AI-generated fixes.",
        openapi_tags=TAGS,
        lifespan=lifespan,
    )
    app.state.services = build_services()

    @app.exception_handler(VibeSecError)
    async def vibesec_error_handler(request: Request, exc: VibeSecError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/health", tags=["health"], summary="Health check")
    def health() -> dict:
        return {"status": "healthy", "version": VERSION}

    app.include_router(scan_routes.router)
    app.include_router(scan_routes.ws_router)
    app.include_router(fix_routes.router)
    return app


app = create_app()
