"""Layout-engine backend: HTML rasterized by headless Chromium.

Highest fidelity (real text shaping and wrapping) and the most expensive:
every render launches its own browser process.  Processes are limited per
worker by a semaphore so a burst of batch items cannot exhaust memory.

The browser is closed in ``finally`` blocks, which also run when the
orchestrator's timeout cancels the task, so no process outlives its render.
"""

import asyncio
import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from core.config import get_settings
from rendering.assets import load_logo
from rendering.backends.base import RenderBackend, RenderError
from rendering.certificates import FONT_STACKS
from rendering.layout import (
    FOOTER_FONT_SCALE,
    LINE_HEIGHT,
    QR_CODE_SIZE,
    REFERENCE_CANVAS,
    SUBTITLE_FONT_SCALE,
    WATERMARK_ANGLE,
    WATERMARK_FONT_SIZE,
    resolve_layout,
)
from rendering.qr import qr_matrix
from rendering.substitution import substitute_all
from schemas import CanvasSize, RenderContext, TemplateConfig

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_environment = Environment(
    loader=FileSystemLoader(_TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)

# Shared by every default-configured BrowserBackend in this process
_shared_slots: asyncio.Semaphore | None = None

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--font-render-hinting=none",
]


def _get_shared_slots() -> asyncio.Semaphore:
    global _shared_slots
    if _shared_slots is None:
        _shared_slots = asyncio.Semaphore(get_settings().browser_slots)
    return _shared_slots


def build_certificate_html(
    config: TemplateConfig,
    context: RenderContext,
    canvas: CanvasSize,
    logo_uri: str | None = None,
) -> str:
    """Render the HTML document for one certificate."""
    settings = get_settings()
    layout = resolve_layout(config, canvas)
    text = substitute_all(config, context)

    qr_cells: list[tuple[int, int]] = []
    qr_modules = 0
    if config.include_qr_code and layout.qr_code is not None:
        matrix = qr_matrix(text.qr_payload)
        qr_modules = len(matrix)
        qr_cells = [
            (c, r)
            for r, row in enumerate(matrix)
            for c, filled in enumerate(row)
            if filled
        ]

    return _environment.get_template("certificate.html").render(
        lang=settings.display_locale,
        canvas=canvas,
        config=config,
        layout=layout,
        text=text,
        logo_uri=logo_uri,
        font_stack=FONT_STACKS[config.font_family],
        line_height=LINE_HEIGHT,
        subtitle_font_size=config.title_font_size * SUBTITLE_FONT_SCALE,
        footer_font_size=config.body_font_size * FOOTER_FONT_SCALE,
        watermark_font_size=(
            WATERMARK_FONT_SIZE * canvas.width / REFERENCE_CANVAS.width
        ),
        watermark_angle=WATERMARK_ANGLE,
        corner_arm=min(canvas.width, canvas.height) * 0.08,
        qr_cells=qr_cells,
        qr_modules=qr_modules,
        qr_size=QR_CODE_SIZE,
    )


class BrowserBackend(RenderBackend):
    name = "browser"
    mime_type = "image/png"

    def __init__(self, slots: int | None = None, timeout: float | None = None):
        settings = get_settings()
        self._slots = asyncio.Semaphore(slots) if slots else _get_shared_slots()
        self._timeout_ms = (timeout or settings.render_timeout_seconds) * 1000

    async def render(
        self,
        config: TemplateConfig,
        context: RenderContext,
        canvas: CanvasSize,
    ) -> bytes:
        logo = await load_logo(config)
        document = build_certificate_html(
            config, context, canvas, logo.to_data_uri() if logo else None
        )

        async with self._slots:
            logger.debug(
                "browser.slot.acquired",
                extra={
                    "template_id": config.id,
                    "canvas": f"{canvas.width:g}x{canvas.height:g}",
                },
            )
            try:
                return await self._screenshot(document, canvas)
            except PlaywrightError as e:
                raise RenderError(f"Browser rendering failed: {e}") from e

    async def _screenshot(self, document: str, canvas: CanvasSize) -> bytes:
        width, height = int(canvas.width), int(canvas.height)
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(
                headless=True, args=CHROMIUM_ARGS
            )
            try:
                page = await browser.new_page(
                    viewport={"width": width, "height": height}
                )
                await page.set_content(
                    document, wait_until="load", timeout=self._timeout_ms
                )
                return await page.screenshot(
                    type="png",
                    clip={"x": 0, "y": 0, "width": width, "height": height},
                    timeout=self._timeout_ms,
                )
            finally:
                await browser.close()
