# src/chatline/main.py
"""Main entry point for the Chatline application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from chatline.api.v1 import realtime_router
from chatline.api.v1.router import api_router
from chatline.core.errors import ChatError, InternalError
from chatline.core.settings import settings
from chatline.services.notifications import ConnectionRegistry

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.app_name} API",
    description="Messaging backend: friends, blocks, direct and group chat, reactions and call logs",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(api_router, prefix="/api")
app.include_router(realtime_router)

# Uploaded attachments and profile pictures
app.mount(
    settings.upload_url_prefix,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)

# Created here so the registry exists before the first request; startup resets it.
app.state.connections = ConnectionRegistry()


def render_error(exc: ChatError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=exc.headers,
    )


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render service errors as ``{"detail": message}`` with their status code."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return render_error(exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything the services did not anticipate and answer with a plain 500."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return render_error(InternalError("Internal server error"))


@app.on_event("startup")
async def on_startup() -> None:
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    app.state.connections = ConnectionRegistry()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    registry: ConnectionRegistry | None = getattr(app.state, "connections", None)
    if registry is not None:
        registry.clear()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": f"{settings.app_name} API",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chatline.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
