"""Certificate rendering orchestration.

This module runs a certificate through an ordered chain of backends:
- Config validation (before any backend runs)
- One attempt per backend, strictly in order, each under a hard timeout
- Output validation by format signature
- A full attempt history on success and on exhaustion

Routes and the CLI should delegate all rendering to this module.
"""

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from core.config import get_settings
from rendering.backends import (
    InvalidOutputError,
    RenderBackend,
    RenderError,
    build_backends,
    validate_output,
)
from rendering.layout import canvas_for
from schemas import (
    AttemptStatus,
    ExhaustedResult,
    FailureKind,
    RenderAttempt,
    RenderContext,
    RenderedResult,
    TemplateConfig,
)

logger = logging.getLogger(__name__)

BackendRef = RenderBackend | str


class ConfigInvalidError(Exception):
    """Raised when a template config fails validation.

    No backend is attempted for an invalid config.
    """

    def __init__(self, validation_error: ValidationError):
        self.validation_error = validation_error
        self.errors = validation_error.errors(include_url=False)
        super().__init__(f"Invalid template config: {self.errors}")


class ChainExhaustedError(Exception):
    """Raised by ``require_rendered`` when every backend failed."""

    def __init__(self, attempts: Sequence[RenderAttempt]):
        self.attempts = tuple(attempts)
        summary = ", ".join(
            f"{a.backend}={a.failure.value if a.failure else a.status.value}"
            for a in self.attempts
        )
        super().__init__(f"All render backends failed ({summary})")


def parse_config(config: TemplateConfig | Mapping[str, Any]) -> TemplateConfig:
    """Validate a raw config mapping.

    Raises:
        ConfigInvalidError: If the mapping is not a valid template config.
    """
    if isinstance(config, TemplateConfig):
        return config
    try:
        return TemplateConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigInvalidError(e) from e


def resolve_priority(priority: Sequence[BackendRef]) -> list[RenderBackend]:
    """Turn backend names into instances, keeping given instances as-is.

    Raises:
        ValueError: On an empty priority list or unknown backend name.
    """
    if not priority:
        raise ValueError("Priority list must contain at least one backend")
    names = [ref for ref in priority if isinstance(ref, str)]
    built = iter(build_backends(names) if names else [])
    return [
        ref if isinstance(ref, RenderBackend) else next(built) for ref in priority
    ]


async def _attempt(
    backend: RenderBackend,
    config: TemplateConfig,
    context: RenderContext,
    timeout: float,
) -> tuple[RenderAttempt, bytes | None]:
    """Run one backend and classify the outcome. Never raises except on cancel."""
    canvas = canvas_for(config.orientation)
    started = time.perf_counter()

    def finish(
        status: AttemptStatus,
        failure: FailureKind | None = None,
        detail: str | None = None,
    ) -> RenderAttempt:
        return RenderAttempt(
            backend=backend.name,
            status=status,
            failure=failure,
            detail=detail,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

    logger.debug(
        "render.attempt.started",
        extra={"backend": backend.name, "template_id": config.id, "timeout": timeout},
    )

    deadline = asyncio.timeout(timeout)
    try:
        async with deadline:
            content = await backend.render(config, context, canvas)
        validate_output(content, backend.mime_type)
    except TimeoutError as e:
        if deadline.expired():
            return finish(
                AttemptStatus.FAILED,
                FailureKind.TIMEOUT,
                f"Exceeded {timeout:g}s",
            ), None
        return finish(
            AttemptStatus.FAILED, FailureKind.ERROR, str(e) or "timeout"
        ), None
    except InvalidOutputError as e:
        return finish(AttemptStatus.FAILED, FailureKind.INVALID_OUTPUT, str(e)), None
    except Exception as e:
        # Anything other than RenderError is a backend bug; it still only
        # fails this attempt.
        if not isinstance(e, RenderError):
            logger.exception(
                "render.attempt.crashed",
                extra={"backend": backend.name, "template_id": config.id},
            )
        return finish(
            AttemptStatus.FAILED, FailureKind.ERROR, str(e) or type(e).__name__
        ), None

    return finish(AttemptStatus.SUCCESS), content


async def generate(
    config: TemplateConfig | Mapping[str, Any],
    context: RenderContext,
    priority: Sequence[BackendRef],
    *,
    timeout: float | None = None,
) -> RenderedResult | ExhaustedResult:
    """Render one certificate with the first backend that succeeds.

    Args:
        config: Template config (raw mappings are validated first)
        context: Participant values for placeholder substitution
        priority: Backends (instances or names), highest priority first
        timeout: Per-attempt budget in seconds; defaults to settings

    Returns:
        RenderedResult with the artifact and attempt history, or
        ExhaustedResult with exactly one failed attempt per backend

    Raises:
        ConfigInvalidError: If config is invalid (no backend is tried)
        ValueError: If timeout <= 0, or the priority list is empty or names
            an unknown backend
    """
    template = parse_config(config)
    backends = resolve_priority(priority)
    if timeout is None:
        timeout = get_settings().render_timeout_seconds
    if timeout <= 0:
        raise ValueError("Attempt timeout must be positive")

    attempts: list[RenderAttempt] = []
    for backend in backends:
        attempt, content = await _attempt(backend, template, context, timeout)
        attempts.append(attempt)

        if content is not None:
            logger.info(
                "render.rendered",
                extra={
                    "backend": backend.name,
                    "template_id": template.id,
                    "attempt_count": len(attempts),
                    "duration_ms": attempt.duration_ms,
                    "size_bytes": len(content),
                },
            )
            return RenderedResult(
                content=content,
                mime_type=backend.mime_type,
                backend=backend.name,
                attempts=tuple(attempts),
            )

        logger.warning(
            "render.attempt.failed",
            extra={
                "backend": backend.name,
                "template_id": template.id,
                "failure": attempt.failure,
                "detail": attempt.detail,
                "duration_ms": attempt.duration_ms,
            },
        )

    logger.error(
        "render.exhausted",
        extra={
            "template_id": template.id,
            "backends": [a.backend for a in attempts],
            "failures": [a.failure for a in attempts],
        },
    )
    return ExhaustedResult(attempts=tuple(attempts))


def require_rendered(result: RenderedResult | ExhaustedResult) -> RenderedResult:
    """Unwrap a result for callers that treat exhaustion as an error.

    Raises:
        ChainExhaustedError: If every backend failed.
    """
    if isinstance(result, ExhaustedResult):
        raise ChainExhaustedError(result.attempts)
    return result


async def render_with_defaults(
    config: TemplateConfig | Mapping[str, Any],
    context: RenderContext,
) -> RenderedResult | ExhaustedResult:
    """Render using the configured backend chain and timeout."""
    return await generate(config, context, get_settings().backend_names)
