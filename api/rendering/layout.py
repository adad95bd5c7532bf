"""Percentage layout to absolute coordinates.

Templates place every element by its center, as a percentage of the canvas.
This is the one place that turns those percentages into absolute units:
pixels on the reference canvas for image backends, points inside the
printable area of a page for the paginated backend.  Backends only translate
the resulting points into their own placement primitive.
"""

import textwrap
from dataclasses import dataclass

from reportlab.lib.pagesizes import A3, A4, A5, LEGAL, LETTER, landscape, portrait
from reportlab.lib.units import inch

from schemas import (
    CanvasSize,
    Orientation,
    PageMargin,
    PageSize,
    Point,
    Position,
    TemplateConfig,
)

REFERENCE_CANVAS = CanvasSize(width=1200, height=800)

# Offsets (percentage points) of elements that have no position of their own
SUBTITLE_OFFSET_Y = 8.0
FOOTER_OFFSET_Y = 15.0

TEXT_BOX_WIDTH_RATIO = 0.8
BORDER_INSET = 20.0

# Average glyph advance as a fraction of the font size, for wrapping without
# a text engine
AVERAGE_CHAR_WIDTH = 0.52
LINE_HEIGHT = 1.5

# Derived sizes (fractions of the configured font sizes, reference pixels)
SUBTITLE_FONT_SCALE = 0.6
FOOTER_FONT_SCALE = 0.9
QR_CODE_SIZE = 60.0
WATERMARK_FONT_SIZE = 96.0
WATERMARK_ANGLE = -45.0

_PAGE_SIZES = {
    PageSize.A4: A4,
    PageSize.A3: A3,
    PageSize.A5: A5,
    PageSize.LETTER: LETTER,
    PageSize.LEGAL: LEGAL,
}

_PAGE_MARGINS = {
    PageMargin.NARROW: 0.3 * inch,
    PageMargin.NORMAL: 0.5 * inch,
    PageMargin.WIDE: 0.8 * inch,
}


def canvas_for(
    orientation: Orientation, reference: CanvasSize = REFERENCE_CANVAS
) -> CanvasSize:
    """Reference canvas for an orientation (landscape is the reference)."""
    if orientation == Orientation.PORTRAIT:
        return reference.swapped()
    return reference


def resolve(position: Position, canvas: CanvasSize) -> Point:
    """Map a percentage position onto ``canvas``.

    The result is the element's center; backends either center-anchor
    natively or subtract half of the element's extent.
    """
    x = position.x * canvas.width / 100
    y = position.y * canvas.height / 100
    return Point(
        x=min(max(x, 0.0), canvas.width),
        y=min(max(y, 0.0), canvas.height),
    )


def offset(position: Position, dy: float) -> Position:
    """A position shifted vertically, clamped to the canvas."""
    return Position(x=position.x, y=min(max(position.y + dy, 0.0), 100.0))


@dataclass(frozen=True)
class ResolvedLayout:
    """Absolute centers of every element for one canvas."""

    canvas: CanvasSize
    title: Point
    subtitle: Point
    name: Point
    body: Point
    footer: Point
    watermark: Point
    logo: Point | None
    qr_code: Point | None
    text_width: float
    border_inset: float


def resolve_layout(config: TemplateConfig, canvas: CanvasSize) -> ResolvedLayout:
    return ResolvedLayout(
        canvas=canvas,
        title=resolve(config.title_position, canvas),
        subtitle=resolve(offset(config.title_position, SUBTITLE_OFFSET_Y), canvas),
        name=resolve(config.name_position, canvas),
        body=resolve(config.body_position, canvas),
        footer=resolve(offset(config.body_position, FOOTER_OFFSET_Y), canvas),
        watermark=Point(x=canvas.width / 2, y=canvas.height / 2),
        logo=resolve(config.logo_position, canvas) if config.logo_position else None,
        qr_code=(
            resolve(config.qr_code_position, canvas)
            if config.qr_code_position
            else None
        ),
        text_width=canvas.width * TEXT_BOX_WIDTH_RATIO,
        border_inset=BORDER_INSET * canvas.width / REFERENCE_CANVAS.width,
    )


# =============================================================================
# Print model
# =============================================================================


@dataclass(frozen=True)
class PageFrame:
    """A physical page in points with a uniform margin."""

    width: float
    height: float
    margin: float

    @property
    def content(self) -> CanvasSize:
        return CanvasSize(
            width=self.width - 2 * self.margin,
            height=self.height - 2 * self.margin,
        )


def page_frame(
    page_size: PageSize, margin: PageMargin, orientation: Orientation
) -> PageFrame:
    size = _PAGE_SIZES[page_size]
    width, height = (
        landscape(size) if orientation == Orientation.LANDSCAPE else portrait(size)
    )
    return PageFrame(width=width, height=height, margin=_PAGE_MARGINS[margin])


def resolve_page_layout(config: TemplateConfig, frame: PageFrame) -> ResolvedLayout:
    """Same element map as ``resolve_layout``, inside the printable area.

    Coordinates are measured from the page's top-left corner.
    """
    inner = resolve_layout(config, frame.content)

    def shift(point: Point) -> Point:
        return Point(x=point.x + frame.margin, y=point.y + frame.margin)

    return ResolvedLayout(
        canvas=CanvasSize(width=frame.width, height=frame.height),
        title=shift(inner.title),
        subtitle=shift(inner.subtitle),
        name=shift(inner.name),
        body=shift(inner.body),
        footer=shift(inner.footer),
        watermark=shift(inner.watermark),
        logo=shift(inner.logo) if inner.logo else None,
        qr_code=shift(inner.qr_code) if inner.qr_code else None,
        text_width=inner.text_width,
        border_inset=frame.margin / 2,
    )


def wrap_lines(text: str, font_size: float, max_width: float) -> list[str]:
    """Split text into lines that fit ``max_width`` at ``font_size``."""
    if not text:
        return []
    chars_per_line = max(int(max_width / (font_size * AVERAGE_CHAR_WIDTH)), 1)
    lines: list[str] = []
    for paragraph in text.splitlines():
        lines.extend(textwrap.wrap(paragraph, width=chars_per_line) or [""])
    return lines
