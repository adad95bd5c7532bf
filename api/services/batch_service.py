"""Batch certificate rendering.

Two ways to render many certificates:
- ``generate_batch``: one artifact per item through the fallback chain,
  with per-item failure reporting
- ``generate_combined_document``: every participant as a page of a single
  PDF (the "generate for all participants" download)

A failing item never aborts a batch.
"""

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from core.config import get_settings
from core.logger import bind_contextvars, clear_contextvars
from rendering.backends import (
    InvalidOutputError,
    PaginatedBackend,
    RenderError,
    validate_output,
)
from schemas import (
    AttemptStatus,
    BatchFailureReason,
    BatchItemFailed,
    BatchResult,
    BatchSuccess,
    ExhaustedResult,
    FailureKind,
    RenderAttempt,
    RenderContext,
    RenderedResult,
    TemplateConfig,
)
from services.certificates_service import (
    BackendRef,
    ConfigInvalidError,
    generate,
    parse_config,
    resolve_priority,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    """One certificate to render: a config (possibly unvalidated) and a context."""

    config: TemplateConfig | Mapping[str, Any]
    context: RenderContext
    item_id: str | None = None


async def _render_item(
    index: int,
    item: BatchItem,
    priority: Sequence[BackendRef],
    timeout: float | None,
) -> BatchSuccess | BatchItemFailed:
    bind_contextvars(batch_index=index, item_id=item.item_id)
    try:
        result = await generate(item.config, item.context, priority, timeout=timeout)
    except ConfigInvalidError as e:
        return BatchItemFailed(
            index=index,
            item_id=item.item_id,
            reason=BatchFailureReason.CONFIG_INVALID,
            message=str(e),
        )
    except Exception as e:
        logger.exception("batch.item_crashed", extra={"index": index})
        return BatchItemFailed(
            index=index,
            item_id=item.item_id,
            reason=BatchFailureReason.UNEXPECTED,
            message=str(e) or type(e).__name__,
        )
    finally:
        clear_contextvars()

    if isinstance(result, ExhaustedResult):
        return BatchItemFailed(
            index=index,
            item_id=item.item_id,
            reason=BatchFailureReason.CHAIN_EXHAUSTED,
            message="All render backends failed",
            attempts=result.attempts,
        )
    return BatchSuccess(index=index, item_id=item.item_id, result=result)


async def generate_batch(
    items: Sequence[BatchItem],
    priority: Sequence[BackendRef],
    *,
    concurrency: int | None = None,
    timeout: float | None = None,
) -> BatchResult:
    """Render every item with a fixed pool of workers.

    Args:
        items: Certificates to render
        priority: Backend chain applied to every item
        concurrency: Worker count; defaults to BATCH_CONCURRENCY
        timeout: Per-attempt budget in seconds; defaults to settings

    Returns:
        BatchResult with one entry per item across ``succeeded`` and
        ``failed``, each in completion order and carrying its input index

    Raises:
        ValueError: If concurrency < 1, timeout <= 0, or the priority list is
            empty or names an unknown backend
    """
    if concurrency is None:
        concurrency = get_settings().batch_concurrency
    if concurrency < 1:
        raise ValueError("Batch concurrency must be at least 1")
    if timeout is not None and timeout <= 0:
        raise ValueError("Attempt timeout must be positive")
    # Fail fast on a bad chain instead of reporting it once per item
    backends = resolve_priority(priority)

    started = time.perf_counter()
    queue: asyncio.Queue[tuple[int, BatchItem]] = asyncio.Queue()
    for index, item in enumerate(items):
        queue.put_nowait((index, item))

    succeeded: list[BatchSuccess] = []
    failed: list[BatchItemFailed] = []

    async def worker() -> None:
        while True:
            try:
                index, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcome = await _render_item(index, item, backends, timeout)
            finally:
                queue.task_done()
            if isinstance(outcome, BatchSuccess):
                succeeded.append(outcome)
            else:
                logger.warning(
                    "batch.item_failed",
                    extra={
                        "index": outcome.index,
                        "item_id": outcome.item_id,
                        "reason": outcome.reason,
                        "detail": outcome.message,
                    },
                )
                failed.append(outcome)

    workers = [
        asyncio.create_task(worker()) for _ in range(min(concurrency, len(items)))
    ]
    try:
        await asyncio.gather(*workers)
    finally:
        for task in workers:
            task.cancel()

    logger.info(
        "batch.complete",
        extra={
            "total": len(items),
            "succeeded": len(succeeded),
            "failed": len(failed),
            "concurrency": concurrency,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
    return BatchResult(succeeded=tuple(succeeded), failed=tuple(failed))


async def generate_combined_document(
    config: TemplateConfig | Mapping[str, Any],
    contexts: Sequence[RenderContext],
    *,
    backend: PaginatedBackend | None = None,
    timeout: float | None = None,
) -> RenderedResult | ExhaustedResult:
    """Render all participants as pages of one PDF.

    The whole document gets a single attempt under a budget that grows with
    the number of pages.

    Raises:
        ConfigInvalidError: If config is invalid
        ValueError: If there are no participants or timeout <= 0
    """
    template = parse_config(config)
    if not contexts:
        raise ValueError("At least one participant is required")

    backend = backend or PaginatedBackend()
    per_page = get_settings().render_timeout_seconds if timeout is None else timeout
    if per_page <= 0:
        raise ValueError("Attempt timeout must be positive")
    budget = per_page * max(1, len(contexts) / 10)
    started = time.perf_counter()

    def attempt(
        failure: FailureKind | None = None, detail: str | None = None
    ) -> RenderAttempt:
        return RenderAttempt(
            backend=backend.name,
            status=AttemptStatus.FAILED if failure else AttemptStatus.SUCCESS,
            failure=failure,
            detail=detail,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

    deadline = asyncio.timeout(budget)
    try:
        async with deadline:
            content = await backend.render_many(template, contexts)
        validate_output(content, backend.mime_type)
    except TimeoutError as e:
        if deadline.expired():
            failure = attempt(FailureKind.TIMEOUT, f"Exceeded {budget:g}s")
        else:
            failure = attempt(FailureKind.ERROR, str(e) or "timeout")
    except InvalidOutputError as e:
        failure = attempt(FailureKind.INVALID_OUTPUT, str(e))
    except Exception as e:
        if not isinstance(e, RenderError):
            logger.exception(
                "render.attempt.crashed",
                extra={"backend": backend.name, "template_id": template.id},
            )
        failure = attempt(FailureKind.ERROR, str(e) or type(e).__name__)
    else:
        logger.info(
            "render.rendered",
            extra={
                "backend": backend.name,
                "template_id": template.id,
                "pages": len(contexts),
                "size_bytes": len(content),
            },
        )
        return RenderedResult(
            content=content,
            mime_type=backend.mime_type,
            backend=backend.name,
            attempts=(attempt(),),
        )

    logger.error(
        "render.exhausted",
        extra={
            "template_id": template.id,
            "backends": [backend.name],
            "failures": [failure.failure],
            "pages": len(contexts),
        },
    )
    return ExhaustedResult(attempts=(failure,))
