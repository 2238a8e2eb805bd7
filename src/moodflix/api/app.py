from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from moodflix.api.rate_limit import RateLimitMiddleware
from moodflix.api.routes import router
from moodflix.core.config import log_level, parse_csv_env
from moodflix.core.store import create_document_store

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    level = getattr(logging, log_level().upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg") or "Invalid value"
    return f"{loc}: {msg}" if loc else msg


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    app.state.store.close()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="MoodFlix", version="0.1.0", lifespan=_lifespan)

    # Attach shared components.
    app.state.store = create_document_store()

    # CORS is opt-in. Configure allowed origins via env var, e.g.
    #   MOODFLIX_CORS_ORIGINS=https://moodflix.app,https://admin.moodflix.app
    cors_origins = parse_csv_env("MOODFLIX_CORS_ORIGINS")
    if cors_origins:
        # Wildcard origins never get credentials.
        allow_all = "*" in cors_origins
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if allow_all else cors_origins,
            allow_credentials=False,
            allow_methods=["*"] if allow_all else ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    app.add_middleware(RateLimitMiddleware)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(_request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(_request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    # Unexpected errors never leak internals.
    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(router)
    logger.info("MoodFlix API ready (db=%s)", app.state.store.path)
    return app


app = create_app()
