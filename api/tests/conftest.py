"""Pytest configuration and shared fixtures.

This module provides:
- Deterministic environment for Settings (backend chain, remote service)
- Cache resets so each test sees fresh settings and date policy
- Sample templates and participants
- Fake backends for orchestrator and batch tests
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ["RENDER_BACKENDS"] = "browser,vector"
os.environ["VECTOR_OUTPUT"] = "svg"
os.environ["DISPLAY_TIMEZONE"] = "America/Sao_Paulo"
os.environ["DISPLAY_LOCALE"] = "pt-BR"
os.environ["TRANSFORM_CLOUD_NAME"] = "demo"
os.environ.setdefault("RENDER_TIMEOUT_SECONDS", "10")

import asyncio
from collections.abc import Callable, Generator
from datetime import datetime

import pytest

from core.config import clear_settings_cache
from rendering.backends import RenderBackend
from rendering.backends import browser as browser_module
from rendering.substitution import default_policy
from schemas import CanvasSize, RenderContext, TemplateConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PDF_BYTES = b"%PDF-1.4\n%fake\n"
SVG_BYTES = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>'


@pytest.fixture(autouse=True)
def _reset_caches() -> Generator[None]:
    """Settings, date policy and browser slots are process-wide caches."""
    clear_settings_cache()
    default_policy.cache_clear()
    browser_module._shared_slots = None
    yield
    clear_settings_cache()
    default_policy.cache_clear()
    browser_module._shared_slots = None


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def template() -> TemplateConfig:
    return TemplateConfig(
        id="tpl-1",
        event_id="evt-1",
        title="Certificado de {eventName}",
        body_text="Certificamos que {userName} participou de {eventName}.",
    )


@pytest.fixture
def context() -> RenderContext:
    return RenderContext(
        user_name="Ana Souza",
        event_name="PyCon",
        event_date=datetime(2025, 3, 5),
        event_start_time=datetime(2025, 3, 5, 9, 0),
        event_end_time=datetime(2025, 3, 5, 17, 30),
    )


@pytest.fixture
def participants() -> list[RenderContext]:
    return [
        RenderContext(user_name=f"Participant {i}", event_name="PyCon")
        for i in range(3)
    ]


# =============================================================================
# Fake backends
# =============================================================================


class FakeBackend(RenderBackend):
    """Scripted backend that records every call.

    ``behavior`` is bytes to return, an exception to raise, or a callable
    taking the call's arguments.
    """

    def __init__(
        self,
        name: str,
        behavior: bytes | Exception | Callable = PNG_BYTES,
        mime_type: str = "image/png",
        delay: float = 0.0,
    ):
        self.name = name
        self.mime_type = mime_type
        self.behavior = behavior
        self.delay = delay
        self.calls: list[tuple[TemplateConfig, RenderContext, CanvasSize]] = []

    async def render(
        self,
        config: TemplateConfig,
        context: RenderContext,
        canvas: CanvasSize,
    ) -> bytes:
        self.calls.append((config, context, canvas))
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.behavior, Exception):
            raise self.behavior
        if callable(self.behavior):
            return self.behavior(config, context, canvas)
        return self.behavior


@pytest.fixture
def fake_backend() -> type[FakeBackend]:
    return FakeBackend
