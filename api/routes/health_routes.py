"""Health check endpoints."""

from fastapi import APIRouter, HTTPException
from starlette import status

from core.config import get_settings
from rendering.backends import build_backends
from schemas import HealthResponse, ReadyResponse

router = APIRouter(tags=["health"])

SERVICE_NAME = "certificate-renderer"


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", service=SERVICE_NAME)


@router.get(
    "/ready",
    response_model=ReadyResponse,
    responses={
        503: {
            "description": "Service unavailable - backend chain cannot be built",
            "content": {
                "application/json": {"example": {"detail": "Unknown render backend"}}
            },
        }
    },
)
async def ready() -> ReadyResponse:
    """Readiness endpoint.

    Returns 200 when the configured backend chain can be instantiated.
    Backends are not exercised; a ready service may still exhaust a chain.
    """
    try:
        backends = build_backends(get_settings().backend_names)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e

    return ReadyResponse(status="ready", backends=[b.name for b in backends])
