"""Certificate rendering endpoints.

Endpoints return the artifact bytes directly. An exhausted chain is a 502
with the attempt history so callers can see which backends failed and why.
"""

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import JSONResponse

from core.config import get_settings
from schemas import (
    BatchItemSummary,
    BatchRenderRequest,
    BatchSummaryResponse,
    CombinedDocumentRequest,
    ExhaustedResponse,
    ExhaustedResult,
    RenderRequest,
)
from services.batch_service import (
    BatchItem,
    generate_batch,
    generate_combined_document,
)
from services.certificates_service import generate

router = APIRouter(prefix="/api/certificates", tags=["certificates"])

_EXTENSIONS = {
    "image/png": "png",
    "image/svg+xml": "svg",
    "application/pdf": "pdf",
}

_EXHAUSTED_RESPONSE = {
    "model": ExhaustedResponse,
    "description": "Every backend in the chain failed",
}


def _exhausted(result: ExhaustedResult) -> JSONResponse:
    body = ExhaustedResponse(
        detail="All render backends failed",
        attempts=list(result.attempts),
    )
    return JSONResponse(status_code=502, content=body.model_dump(mode="json"))


@router.post(
    "/render",
    responses={
        200: {
            "content": {mime: {} for mime in _EXTENSIONS},
            "description": "Rendered certificate",
        },
        400: {"description": "Unknown backend name"},
        502: _EXHAUSTED_RESPONSE,
    },
)
async def render_certificate_endpoint(body: RenderRequest) -> Response:
    """Render one certificate through the fallback chain."""
    priority = body.backends or get_settings().backend_names
    try:
        result = await generate(body.config, body.context, priority)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(result, ExhaustedResult):
        return _exhausted(result)

    extension = _EXTENSIONS.get(result.mime_type, "bin")
    return Response(
        content=result.content,
        media_type=result.mime_type,
        headers={
            "Content-Disposition": f'inline; filename="certificate.{extension}"',
            "X-Render-Backend": result.backend,
            "Cache-Control": "no-store",
        },
    )


@router.post(
    "/batch/summary",
    response_model=BatchSummaryResponse,
    responses={400: {"description": "Unknown backend name"}},
)
async def batch_summary_endpoint(body: BatchRenderRequest) -> BatchSummaryResponse:
    """Render many certificates and report per-item outcomes.

    Invalid configs and exhausted chains are reported per item; the request
    itself succeeds as long as the batch ran.
    """
    priority = body.backends or get_settings().backend_names
    items = [
        BatchItem(config=item.config, context=item.context, item_id=item.item_id)
        for item in body.items
    ]
    try:
        result = await generate_batch(items, priority)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return BatchSummaryResponse(
        succeeded=[
            BatchItemSummary(
                index=success.index,
                item_id=success.item_id,
                backend=success.result.backend,
                mime_type=success.result.mime_type,
                size_bytes=len(success.result.content),
            )
            for success in result.succeeded
        ],
        failed=list(result.failed),
    )


@router.post(
    "/batch",
    responses={
        200: {
            "content": {"application/pdf": {}},
            "description": "One PDF page per participant",
        },
        502: _EXHAUSTED_RESPONSE,
    },
)
async def combined_document_endpoint(body: CombinedDocumentRequest) -> Response:
    """Render every participant into a single PDF document."""
    result = await generate_combined_document(body.config, body.participants)

    if isinstance(result, ExhaustedResult):
        return _exhausted(result)

    return Response(
        content=result.content,
        media_type=result.mime_type,
        headers={
            "Content-Disposition": 'attachment; filename="certificates.pdf"',
            "X-Render-Backend": result.backend,
            "Cache-Control": "no-store",
        },
    )
