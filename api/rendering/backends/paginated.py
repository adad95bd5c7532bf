"""Paginated-document backend: print-ready PDF drawn with reportlab.

Page size and margins come from the template; element centers are mapped
into the printable area by ``resolve_page_layout``.  ``render_many`` puts
one participant per page, which is how "generate for all participants"
produces a single document.
"""

import asyncio
import logging
from collections.abc import Sequence
from io import BytesIO

from reportlab.lib.colors import HexColor, white
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas as pdf_canvas

from rendering.assets import Asset, load_logo
from rendering.backends.base import RenderBackend, RenderError
from rendering.layout import (
    FOOTER_FONT_SCALE,
    LINE_HEIGHT,
    QR_CODE_SIZE,
    REFERENCE_CANVAS,
    SUBTITLE_FONT_SCALE,
    WATERMARK_ANGLE,
    WATERMARK_FONT_SIZE,
    PageFrame,
    ResolvedLayout,
    page_frame,
    resolve_page_layout,
)
from rendering.qr import qr_matrix
from rendering.substitution import SubstitutedText, substitute_all
from schemas import (
    CanvasSize,
    FontFamily,
    Point,
    RenderContext,
    TemplateConfig,
    TemplateStyle,
)

logger = logging.getLogger(__name__)

# (regular, bold) base-14 faces
_BASE_FONTS: dict[FontFamily, tuple[str, str]] = {
    FontFamily.HELVETICA: ("Helvetica", "Helvetica-Bold"),
    FontFamily.TIMES: ("Times-Roman", "Times-Bold"),
    FontFamily.COURIER: ("Courier", "Courier-Bold"),
}

_RASTER_TYPES = ("image/png", "image/jpeg", "image/gif")


def _dejavu_fonts() -> tuple[str, str] | None:
    """Register DejaVu Sans if the TTF files are on reportlab's search path."""
    if "DejaVuSans" in pdfmetrics.getRegisteredFontNames():
        return "DejaVuSans", "DejaVuSans-Bold"
    try:
        pdfmetrics.registerFont(TTFont("DejaVuSans", "DejaVuSans.ttf"))
        pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", "DejaVuSans-Bold.ttf"))
    except (TTFError, OSError):
        return None
    return "DejaVuSans", "DejaVuSans-Bold"


def fonts_for(family: FontFamily) -> tuple[str, str]:
    if family == FontFamily.DEJAVU_SANS:
        fonts = _dejavu_fonts()
        if fonts is None:
            logger.warning(
                "render.pdf.font_unavailable",
                extra={"font": family.value, "fallback": "Helvetica"},
            )
            return _BASE_FONTS[FontFamily.HELVETICA]
        return fonts
    return _BASE_FONTS[family]


class _PageDrawer:
    """Draws certificate pages onto one reportlab canvas.

    Layout points have a top-left origin; reportlab's origin is bottom-left,
    so every y is flipped against the page height.
    """

    def __init__(
        self,
        pdf: pdf_canvas.Canvas,
        config: TemplateConfig,
        frame: PageFrame,
        logo: ImageReader | None,
    ):
        self.pdf = pdf
        self.config = config
        self.frame = frame
        self.layout: ResolvedLayout = resolve_page_layout(config, frame)
        self.logo = logo
        self.regular, self.bold = fonts_for(config.font_family)
        # Pixel-sized elements scale with the printable width
        self.scale = frame.content.width / REFERENCE_CANVAS.width

    def _y(self, y: float) -> float:
        return self.frame.height - y

    def _centered(
        self, point: Point, text: str, font: str, size: float, color: str
    ) -> None:
        self.pdf.setFont(font, size)
        self.pdf.setFillColor(HexColor(color))
        self.pdf.drawCentredString(point.x, self._y(point.y) - size / 3, text)

    def _paragraph(
        self, point: Point, text: str, font: str, size: float, color: str
    ) -> None:
        lines = simpleSplit(text, font, size, self.layout.text_width)
        line_height = size * LINE_HEIGHT
        first_y = point.y - line_height * (len(lines) - 1) / 2
        for i, line in enumerate(lines):
            self._centered(
                Point(x=point.x, y=first_y + i * line_height), line, font, size, color
            )

    def _background(self) -> None:
        c = self.config
        w, h = self.frame.width, self.frame.height
        self.pdf.setFillColor(HexColor(c.background_color))
        self.pdf.rect(0, 0, w, h, stroke=0, fill=1)

        inset = self.layout.border_inset
        if c.template == TemplateStyle.MODERN:
            bar = h * 0.015
            self.pdf.setFillColor(HexColor(c.primary_color))
            self.pdf.rect(0, h - bar, w, bar, stroke=0, fill=1)
            self.pdf.rect(0, 0, w, bar, stroke=0, fill=1)
        elif c.template == TemplateStyle.CLASSIC:
            inner = inset * 1.6
            self.pdf.setStrokeColor(HexColor(c.border_color))
            self.pdf.setLineWidth(1)
            self.pdf.rect(inner, inner, w - 2 * inner, h - 2 * inner, stroke=1, fill=0)
        elif c.template == TemplateStyle.ELEGANT:
            arm = min(w, h) * 0.08
            self.pdf.setStrokeColor(HexColor(c.primary_color))
            self.pdf.setLineWidth(2)
            for x, y, dx, dy in (
                (inset, inset, 1, 1),
                (w - inset, inset, -1, 1),
                (inset, h - inset, 1, -1),
                (w - inset, h - inset, -1, -1),
            ):
                self.pdf.line(x, y, x + dx * arm, y)
                self.pdf.line(x, y, x, y + dy * arm)

        if c.show_border and c.border_width > 0:
            self.pdf.setStrokeColor(HexColor(c.border_color))
            self.pdf.setLineWidth(c.border_width)
            self.pdf.rect(inset, inset, w - 2 * inset, h - 2 * inset, stroke=1, fill=0)

    def _watermark(self, text: str) -> None:
        point = self.layout.watermark
        size = WATERMARK_FONT_SIZE * self.scale
        self.pdf.saveState()
        self.pdf.setFillAlpha(self.config.watermark_opacity)
        self.pdf.translate(point.x, self._y(point.y))
        # reportlab rotates counter-clockwise with y pointing up
        self.pdf.rotate(-WATERMARK_ANGLE)
        self.pdf.setFont(self.bold, size)
        self.pdf.setFillColor(HexColor(self.config.secondary_color))
        self.pdf.drawCentredString(0, -size / 3, text)
        self.pdf.restoreState()

    def _logo(self) -> None:
        point = self.layout.logo
        if self.logo is None or point is None:
            return
        size = self.config.logo_size * self.scale
        self.pdf.drawImage(
            self.logo,
            point.x - size / 2,
            self._y(point.y) - size / 2,
            width=size,
            height=size,
            preserveAspectRatio=True,
            anchor="c",
            mask="auto",
        )

    def _qr_code(self, payload: str) -> None:
        point = self.layout.qr_code
        if not self.config.include_qr_code or point is None:
            return
        matrix = qr_matrix(payload)
        size = QR_CODE_SIZE * self.scale
        module = size / len(matrix)
        left = point.x - size / 2
        top = self._y(point.y) + size / 2
        self.pdf.setFillColor(white)
        self.pdf.rect(left, top - size, size, size, stroke=0, fill=1)
        self.pdf.setFillColor(HexColor("#000000"))
        for r, row in enumerate(matrix):
            for col, filled in enumerate(row):
                if filled:
                    self.pdf.rect(
                        left + col * module,
                        top - (r + 1) * module,
                        module,
                        module,
                        stroke=0,
                        fill=1,
                    )

    def draw_page(self, text: SubstitutedText) -> None:
        c = self.config
        layout = self.layout
        self._background()
        if c.show_watermark and text.watermark:
            self._watermark(text.watermark)
        self._logo()
        if text.title:
            self._centered(
                layout.title, text.title, self.bold, c.title_font_size, c.primary_color
            )
        if text.subtitle:
            self._centered(
                layout.subtitle,
                text.subtitle,
                self.regular,
                c.title_font_size * SUBTITLE_FONT_SCALE,
                c.secondary_color,
            )
        if text.name:
            self._centered(
                layout.name, text.name, self.bold, c.name_font_size, c.primary_color
            )
        if text.body:
            self._paragraph(
                layout.body,
                text.body,
                self.regular,
                c.body_font_size,
                c.secondary_color,
            )
        if text.footer:
            self._centered(
                layout.footer,
                text.footer,
                self.regular,
                c.body_font_size * FOOTER_FONT_SCALE,
                c.secondary_color,
            )
        self._qr_code(text.qr_payload)
        self.pdf.showPage()


def _logo_reader(config: TemplateConfig, logo: Asset | None) -> ImageReader | None:
    if logo is None:
        return None
    if logo.mime_type not in _RASTER_TYPES:
        logger.warning(
            "asset.fetch_failed",
            extra={
                "url": config.logo_url,
                "reason": f"{logo.mime_type} cannot be placed in a PDF",
                "decision": "render_without_logo",
            },
        )
        return None
    try:
        return ImageReader(BytesIO(logo.content))
    except OSError as e:
        logger.warning(
            "asset.fetch_failed",
            extra={
                "url": config.logo_url,
                "reason": str(e),
                "decision": "render_without_logo",
            },
        )
        return None


def build_certificate_pdf(
    config: TemplateConfig,
    contexts: Sequence[RenderContext],
    logo: Asset | None = None,
) -> bytes:
    """Draw one page per context and return the PDF bytes."""
    frame = page_frame(config.page_size, config.page_margin, config.orientation)
    buffer = BytesIO()
    pdf = pdf_canvas.Canvas(buffer, pagesize=(frame.width, frame.height))
    pdf.setTitle(config.title or "Certificate")
    drawer = _PageDrawer(pdf, config, frame, _logo_reader(config, logo))
    for context in contexts:
        drawer.draw_page(substitute_all(config, context))
    pdf.save()
    return buffer.getvalue()


class PaginatedBackend(RenderBackend):
    name = "pdf"
    mime_type = "application/pdf"

    async def render(
        self,
        config: TemplateConfig,
        context: RenderContext,
        canvas: CanvasSize,
    ) -> bytes:
        # Page geometry comes from the template, not the image canvas
        return await self.render_many(config, [context])

    async def render_many(
        self, config: TemplateConfig, contexts: Sequence[RenderContext]
    ) -> bytes:
        """Render every context as one page of a single document."""
        if not contexts:
            raise RenderError("No participants to render")
        logo = await load_logo(config)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, build_certificate_pdf, config, list(contexts), logo
            )
        except (ValueError, OSError) as e:
            raise RenderError(f"PDF generation failed: {e}") from e
