"""
FastAPI Application Factory & Configuration.

This module initializes the FastAPI application instance. It is responsible for:
1.  **Middleware Setup**: CORS for the classroom web frontend.
2.  **Exception Handling**: Map the error taxonomy to status codes and make
    every error a structured JSON body ``{"error": ..., "detail": ...}``.
3.  **Routing**: Mounting the analysis and diagnostics routers.
4.  **Lifecycle**: Creating tables, initializing the job store and, when
    configured, running an embedded worker thread.

Design Pattern
--------------
We use an **Application Factory** pattern (`create_app`) so tests can spin
up separate app instances against an isolated database.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from classlens import __version__
from classlens.api.job_store import JobStore
from classlens.api.routers import analysis, diagnostics
from classlens.core.errors import AuthorizationError, NotFoundError, ValidationError
from classlens.core.settings import get_logger, settings
from classlens.db import init_db
from classlens.worker import start_worker_thread

logger = get_logger("classlens.api")


#: Error labels used in the JSON envelope; other codes use the stdlib phrase.
_ERROR_LABELS: dict[int, str] = {
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def _error(status_code: int, detail: Any) -> JSONResponse:
    label = _ERROR_LABELS.get(status_code) or HTTPStatus(status_code).phrase
    return JSONResponse(status_code=status_code, content={"error": label, "detail": detail})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    ASGI Lifespan context manager.

    - **Startup**: create tables, initialize the job store singleton and
      optionally start the embedded worker.
    - **Shutdown**: stop the embedded worker.
    """
    logger.info("Starting up (env=%s)", settings.environment)
    init_db()
    JobStore.get_instance()

    worker = None
    if settings.embedded_worker:
        worker = start_worker_thread()
        logger.info("Embedded worker started")
    else:
        logger.info("No embedded worker; run `classlens worker` for the queue watchdog")

    yield

    if worker is not None:
        thread, stop_event = worker
        stop_event.set()
        thread.join(timeout=10)
        logger.info("Embedded worker stopped")
    logger.info("Shut down")


def create_app() -> FastAPI:
    """
    Construct and configure the ClassLens FastAPI application.

    Returns
    -------
    FastAPI
        The configured ASGI application ready to be served by Uvicorn.
    """
    app = FastAPI(
        title="ClassLens API",
        description="Background AI analysis of classroom relationships",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Middleware
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Exception Handlers
    # -----------------------------------------------------------------------
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler so unhandled exceptions still return structured JSON."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, str(exc) or type(exc).__name__)

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(
        request: Request, exc: AuthorizationError
    ) -> JSONResponse:
        return _error(403, str(exc))

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(422, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies use the same envelope as payload errors."""
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        )
        return _error(422, details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _error(exc.status_code, exc.detail)

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    app.include_router(analysis.router)
    app.include_router(diagnostics.router)

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, str]:
        """Simple liveness probe."""
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": __version__,
        }

    return app


def get_app() -> FastAPI:
    """Return a fresh application instance (used by tests and tooling)."""
    return create_app()


__all__ = ["create_app", "get_app"]
