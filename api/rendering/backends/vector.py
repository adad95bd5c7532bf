"""Vector backend: hand-built SVG, no external process.

The lowest-dependency strategy and the usual last resort in a chain.  With
``VECTOR_OUTPUT=png`` or ``pdf`` the SVG is converted through CairoSVG in a
worker thread.
"""

import asyncio

from core.config import get_settings
from rendering.assets import load_logo
from rendering.backends.base import RenderBackend, RenderError
from rendering.certificates import build_certificate_svg, svg_to_pdf, svg_to_png
from rendering.layout import resolve_layout
from rendering.substitution import substitute_all
from schemas import CanvasSize, RenderContext, TemplateConfig

_MIME_TYPES = {
    "svg": "image/svg+xml",
    "png": "image/png",
    "pdf": "application/pdf",
}


class VectorBackend(RenderBackend):
    name = "vector"

    def __init__(self, output: str | None = None):
        self.output = output or get_settings().vector_output
        if self.output not in _MIME_TYPES:
            raise ValueError(f"Unsupported vector output: {self.output}")
        self.mime_type = _MIME_TYPES[self.output]

    async def render(
        self,
        config: TemplateConfig,
        context: RenderContext,
        canvas: CanvasSize,
    ) -> bytes:
        logo = await load_logo(config)
        svg = build_certificate_svg(
            config,
            substitute_all(config, context),
            resolve_layout(config, canvas),
            logo,
        )

        if self.output == "svg":
            return svg.encode("utf-8")

        convert = svg_to_png if self.output == "png" else svg_to_pdf
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, convert, svg)
        except (RuntimeError, ValueError, OSError) as e:
            raise RenderError(f"SVG conversion to {self.output} failed: {e}") from e
