"""FastAPI application for the certificate rendering service."""

import logging
from contextlib import asynccontextmanager

import fastapi
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.http_client import close_http_client
from core.logger import configure_logging
from routes import certificates_router, health_router
from schemas import ExhaustedResponse
from services.certificates_service import ChainExhaustedError, ConfigInvalidError

configure_logging()
logger = logging.getLogger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for unhandled exceptions."""
    logger.exception(
        "unhandled.exception",
        extra={
            "exc_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again."},
    )


async def validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handler for request validation errors."""
    if not isinstance(exc, RequestValidationError):
        return JSONResponse(status_code=500, content={"detail": "Unexpected error"})

    logger.warning(
        "request.validation_error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": len(exc.errors()),
        },
    )
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc.errors())},
    )


def jsonable_errors(errors: list | tuple) -> list[dict]:
    """Drop non-serializable ``ctx`` values (e.g. exception instances)."""
    cleaned = []
    for error in errors:
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        cleaned.append(error)
    return cleaned


async def config_invalid_handler(request: Request, exc: Exception) -> JSONResponse:
    """Template configs validated outside the request body (e.g. batch items)."""
    if not isinstance(exc, ConfigInvalidError):
        return JSONResponse(status_code=500, content={"detail": "Unexpected error"})

    logger.warning(
        "render.config_invalid",
        extra={"path": request.url.path, "error_count": len(exc.errors)},
    )
    return JSONResponse(
        status_code=422, content={"detail": jsonable_errors(exc.errors)}
    )


async def chain_exhausted_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, ChainExhaustedError):
        return JSONResponse(status_code=500, content={"detail": "Unexpected error"})

    body = ExhaustedResponse(
        detail="All render backends failed", attempts=list(exc.attempts)
    )
    return JSONResponse(status_code=502, content=body.model_dump(mode="json"))


@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    """Log the configured chain at startup, release the HTTP pool on shutdown."""
    settings = get_settings()
    logger.info(
        "init.complete",
        extra={
            "backends": settings.backend_names,
            "render_timeout_seconds": settings.render_timeout_seconds,
            "browser_slots": settings.browser_slots,
            "batch_concurrency": settings.batch_concurrency,
        },
    )
    try:
        yield
    finally:
        await close_http_client()


_settings = get_settings()

app = fastapi.FastAPI(
    title="Certificate Renderer API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if _settings.enable_docs or _settings.debug else None,
    redoc_url="/redoc" if _settings.enable_docs or _settings.debug else None,
    openapi_url=("/openapi.json" if _settings.enable_docs or _settings.debug else None),
)

app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ConfigInvalidError, config_invalid_handler)
app.add_exception_handler(ChainExhaustedError, chain_exhausted_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(health_router)
app.include_router(certificates_router)
