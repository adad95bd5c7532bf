"""Rendering module for certificate presentation.

This module handles all presentation/rendering logic:
- Placeholder substitution and date/time formatting
- Percentage layout resolution
- SVG generation and conversion
- The rendering backends (see ``rendering.backends``)

Orchestration (fallback chains, batches) lives in services.
"""

from rendering.certificates import (
    build_certificate_svg,
    svg_to_pdf,
    svg_to_png,
)
from rendering.layout import REFERENCE_CANVAS, canvas_for, resolve, resolve_layout
from rendering.presets import preset_config
from rendering.substitution import DateFormatPolicy, substitute, substitute_all

__all__ = [
    "REFERENCE_CANVAS",
    "DateFormatPolicy",
    "build_certificate_svg",
    "canvas_for",
    "preset_config",
    "resolve",
    "resolve_layout",
    "substitute",
    "substitute_all",
    "svg_to_pdf",
    "svg_to_png",
]
