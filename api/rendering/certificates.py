"""Certificate rendering - SVG generation and conversion.

This module handles the drawing of a certificate as a self-contained SVG:
- Text elements at their resolved positions
- Borders and per-style decorations
- Watermark, logo and QR code

The markup depends only on the substituted text and the resolved layout, so
the same config always yields the same document.
"""

import html

from rendering.assets import Asset
from rendering.layout import (
    FOOTER_FONT_SCALE,
    LINE_HEIGHT,
    QR_CODE_SIZE,
    REFERENCE_CANVAS,
    SUBTITLE_FONT_SCALE,
    WATERMARK_ANGLE,
    WATERMARK_FONT_SIZE,
    ResolvedLayout,
    wrap_lines,
)
from rendering.qr import qr_matrix
from rendering.substitution import SubstitutedText
from schemas import FontFamily, Point, TemplateConfig, TemplateStyle

# Helvetica, Times and Courier are PDF base-14 fonts, so PDF output from
# CairoSVG needs no font embedding for them.
FONT_STACKS: dict[FontFamily, str] = {
    FontFamily.HELVETICA: "Helvetica, Arial, sans-serif",
    FontFamily.TIMES: "Times, 'Times New Roman', Georgia, serif",
    FontFamily.COURIER: "Courier, 'Courier New', monospace",
    FontFamily.DEJAVU_SANS: "'DejaVu Sans', Verdana, sans-serif",
}


def _esc(text: str) -> str:
    return html.escape(text, quote=True)


def _fmt(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _text(
    point: Point,
    content: str,
    *,
    font_size: float,
    fill: str,
    weight: str = "normal",
    element_id: str | None = None,
) -> str:
    id_attr = f' id="{element_id}"' if element_id else ""
    return (
        f'<text{id_attr} x="{_fmt(point.x)}" y="{_fmt(point.y)}" '
        f'font-size="{_fmt(font_size)}" fill="{fill}" font-weight="{weight}" '
        f'text-anchor="middle" dominant-baseline="middle">{_esc(content)}</text>'
    )


def _multiline_text(
    point: Point,
    lines: list[str],
    *,
    font_size: float,
    fill: str,
    element_id: str,
) -> str:
    """Center a block of lines vertically on ``point``."""
    line_height = font_size * LINE_HEIGHT
    first_y = point.y - line_height * (len(lines) - 1) / 2
    spans = "".join(
        f'<tspan x="{_fmt(point.x)}" y="{_fmt(first_y + i * line_height)}">'
        f"{_esc(line)}</tspan>"
        for i, line in enumerate(lines)
    )
    return (
        f'<text id="{element_id}" font-size="{_fmt(font_size)}" fill="{fill}" '
        f'text-anchor="middle" dominant-baseline="middle">{spans}</text>'
    )


def _border(config: TemplateConfig, layout: ResolvedLayout) -> str:
    if not config.show_border or config.border_width <= 0:
        return ""
    inset = layout.border_inset
    width = layout.canvas.width - 2 * inset
    height = layout.canvas.height - 2 * inset
    return (
        f'<rect id="border" x="{_fmt(inset)}" y="{_fmt(inset)}" '
        f'width="{_fmt(width)}" height="{_fmt(height)}" fill="none" '
        f'stroke="{config.border_color}" stroke-width="{_fmt(config.border_width)}"/>'
    )


def _decorations(config: TemplateConfig, layout: ResolvedLayout) -> str:
    """Style-specific ornaments. Minimalist and blank templates have none."""
    w, h = layout.canvas.width, layout.canvas.height
    inset = layout.border_inset
    if config.template == TemplateStyle.MODERN:
        bar = h * 0.015
        return (
            f'<rect x="0" y="0" width="{_fmt(w)}" height="{_fmt(bar)}" '
            f'fill="{config.primary_color}"/>'
            f'<rect x="0" y="{_fmt(h - bar)}" width="{_fmt(w)}" height="{_fmt(bar)}" '
            f'fill="{config.primary_color}"/>'
        )
    if config.template == TemplateStyle.CLASSIC:
        inner = inset * 1.6
        return (
            f'<rect x="{_fmt(inner)}" y="{_fmt(inner)}" width="{_fmt(w - 2 * inner)}" '
            f'height="{_fmt(h - 2 * inner)}" fill="none" '
            f'stroke="{config.border_color}" stroke-width="1"/>'
        )
    if config.template == TemplateStyle.ELEGANT:
        arm = min(w, h) * 0.08
        corners = (
            (inset, inset, 1, 1),
            (w - inset, inset, -1, 1),
            (inset, h - inset, 1, -1),
            (w - inset, h - inset, -1, -1),
        )
        return "".join(
            f'<path d="M{_fmt(x)} {_fmt(y + dy * arm)} L{_fmt(x)} {_fmt(y)} '
            f'L{_fmt(x + dx * arm)} {_fmt(y)}" fill="none" '
            f'stroke="{config.primary_color}" stroke-width="2"/>'
            for x, y, dx, dy in corners
        )
    return ""


def _watermark(
    config: TemplateConfig, text: SubstitutedText, layout: ResolvedLayout
) -> str:
    # Drawn at the configured opacity even when it is 0
    if not config.show_watermark or not text.watermark:
        return ""
    center = layout.watermark
    scale = layout.canvas.width / REFERENCE_CANVAS.width
    return (
        f'<g id="watermark" opacity="{_fmt(config.watermark_opacity)}" '
        f'transform="rotate({_fmt(WATERMARK_ANGLE)} {_fmt(center.x)} {_fmt(center.y)})">'
        + _text(
            center,
            text.watermark,
            font_size=WATERMARK_FONT_SIZE * scale,
            fill=config.secondary_color,
            weight="bold",
        )
        + "</g>"
    )


def _logo(config: TemplateConfig, layout: ResolvedLayout, logo: Asset | None) -> str:
    if logo is None or layout.logo is None:
        return ""
    size = config.logo_size
    return (
        f'<image id="logo" x="{_fmt(layout.logo.x - size / 2)}" '
        f'y="{_fmt(layout.logo.y - size / 2)}" width="{_fmt(size)}" '
        f'height="{_fmt(size)}" preserveAspectRatio="xMidYMid meet" '
        f'href="{logo.to_data_uri()}"/>'
    )


def _qr_code(
    config: TemplateConfig, text: SubstitutedText, layout: ResolvedLayout
) -> str:
    if not config.include_qr_code or layout.qr_code is None:
        return ""
    matrix = qr_matrix(text.qr_payload)
    module = QR_CODE_SIZE / len(matrix)
    left = layout.qr_code.x - QR_CODE_SIZE / 2
    top = layout.qr_code.y - QR_CODE_SIZE / 2
    cells = "".join(
        f'<rect x="{_fmt(left + c * module)}" y="{_fmt(top + r * module)}" '
        f'width="{_fmt(module)}" height="{_fmt(module)}"/>'
        for r, row in enumerate(matrix)
        for c, filled in enumerate(row)
        if filled
    )
    return (
        f'<g id="qr-code"><rect x="{_fmt(left)}" y="{_fmt(top)}" '
        f'width="{_fmt(QR_CODE_SIZE)}" height="{_fmt(QR_CODE_SIZE)}" fill="#ffffff"/>'
        f'<g fill="#000000" shape-rendering="crispEdges">{cells}</g></g>'
    )


def build_certificate_svg(
    config: TemplateConfig,
    text: SubstitutedText,
    layout: ResolvedLayout,
    logo: Asset | None = None,
) -> str:
    """Generate the SVG document for one certificate.

    Args:
        config: Template appearance
        text: Already-substituted strings
        layout: Absolute element centers for the target canvas
        logo: Fetched logo, or None to leave the logo out

    Returns:
        SVG content as a string
    """
    w, h = layout.canvas.width, layout.canvas.height
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="http://www.w3.org/2000/svg" '
        f'xmlns:xlink="http://www.w3.org/1999/xlink" '
        f'viewBox="0 0 {_fmt(w)} {_fmt(h)}" width="{_fmt(w)}" height="{_fmt(h)}" '
        f'font-family="{FONT_STACKS[config.font_family]}">',
        f'<rect width="{_fmt(w)}" height="{_fmt(h)}" fill="{config.background_color}"/>',
        _decorations(config, layout),
        _border(config, layout),
        _watermark(config, text, layout),
        _logo(config, layout, logo),
    ]

    if text.title:
        parts.append(
            _text(
                layout.title,
                text.title,
                font_size=config.title_font_size,
                fill=config.primary_color,
                weight="bold",
                element_id="title",
            )
        )
    if text.subtitle:
        parts.append(
            _text(
                layout.subtitle,
                text.subtitle,
                font_size=config.title_font_size * SUBTITLE_FONT_SCALE,
                fill=config.secondary_color,
                element_id="subtitle",
            )
        )
    parts.append(
        _text(
            layout.name,
            text.name,
            font_size=config.name_font_size,
            fill=config.primary_color,
            weight="600",
            element_id="name",
        )
    )
    body_lines = wrap_lines(text.body, config.body_font_size, layout.text_width)
    if body_lines:
        parts.append(
            _multiline_text(
                layout.body,
                body_lines,
                font_size=config.body_font_size,
                fill=config.secondary_color,
                element_id="body",
            )
        )
    if text.footer:
        parts.append(
            _text(
                layout.footer,
                text.footer,
                font_size=config.body_font_size * FOOTER_FONT_SCALE,
                fill=config.secondary_color,
                element_id="footer",
            )
        )
    parts.append(_qr_code(config, text, layout))
    parts.append("</svg>")

    return "\n".join(part for part in parts if part)


_CAIRO_HINT = (
    "On macOS: brew install cairo. "
    "On Ubuntu/Debian: apt-get install libcairo2-dev. "
    "On Alpine: apk add cairo-dev."
)


def svg_to_pdf(svg_content: str) -> bytes:
    """Convert SVG string to PDF bytes using CairoSVG.

    Raises:
        RuntimeError: If cairo library is not installed on the system
    """
    try:
        import cairosvg
    except OSError as e:
        if "cairo" in str(e).lower():
            raise RuntimeError(
                f"PDF conversion requires the Cairo library. {_CAIRO_HINT}"
            ) from e
        raise

    return cairosvg.svg2pdf(bytestring=svg_content.encode("utf-8"))


def svg_to_png(svg_content: str, *, scale: float = 1.0) -> bytes:
    """Convert SVG string to PNG bytes using CairoSVG.

    Args:
        svg_content: SVG string to convert
        scale: Raster scale factor relative to the SVG's own size

    Raises:
        RuntimeError: If cairo library is not installed on the system
    """
    try:
        import cairosvg
    except OSError as e:
        if "cairo" in str(e).lower():
            raise RuntimeError(
                f"PNG conversion requires the Cairo library. {_CAIRO_HINT}"
            ) from e
        raise

    return cairosvg.svg2png(bytestring=svg_content.encode("utf-8"), scale=scale)
