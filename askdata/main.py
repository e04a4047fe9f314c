"""FastAPI application instance and startup hooks."""
from __future__ import annotations

import os
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from askdata.assistant.credentials import CredentialRefresher, CredentialStore
from askdata.assistant.errors import AssistantError
from askdata.assistant.llm_providers import LLMProvider, LLMProviderFactory
from askdata.assistant.router import configure_dependencies, router as assistant_router
from askdata.core import get_logger, get_settings
from askdata.core.logger import init_logging
from askdata.db.metadata import DatabaseMetadata

LOGGER = get_logger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"error": message}``."""

    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError):
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error_response(exc.status_code, str(exc))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        LOGGER.exception("%s %s failed", request.method, request.url.path)
        return _error_response(500, str(exc) or exc.__class__.__name__)


def create_app(
    metadata: Optional[DatabaseMetadata] = None,
    provider: Optional[LLMProvider] = None,
    credentials: Optional[CredentialStore] = None,
    validate_connections: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    init_logging(settings.logging)

    credentials = credentials or CredentialStore()
    metadata = metadata or DatabaseMetadata(settings.metadata_path)
    provider = provider or LLMProviderFactory.create(credentials=credentials)
    refresher = CredentialRefresher(credentials)

    app = FastAPI(title="askdata", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    configure_dependencies(metadata, provider, credentials=credentials)
    app.include_router(assistant_router)
    app.state.credentials = credentials
    app.state.refresher = refresher
    app.state.metadata = metadata

    @app.on_event("startup")
    async def start_background_jobs() -> None:
        credentials.refresh()
        refresher.start()
        if validate_connections:
            try:
                metadata.refresh_metadata()
            except (OSError, ValueError):
                LOGGER.exception("Failed to load database metadata from %s", metadata.metadata_path)
                raise

    @app.on_event("shutdown")
    async def stop_background_jobs() -> None:
        LOGGER.info("Shutting down, stopping credential refresh job")
        await refresher.stop()

    LOGGER.info("FastAPI application initialised")
    return app


def run() -> None:
    """Serve the application with uvicorn (``askdata-server``)."""
    uvicorn.run(
        "askdata.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3001")),
    )
