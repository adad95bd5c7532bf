"""Tests for certificate SVG generation and conversion."""

import builtins
import sys
import xml.etree.ElementTree as ET
from unittest.mock import MagicMock, patch

import pytest

from rendering.assets import Asset
from rendering.certificates import (
    build_certificate_svg,
    svg_to_pdf,
    svg_to_png,
)
from rendering.layout import canvas_for, resolve_layout
from rendering.substitution import DateFormatPolicy, substitute_all
from schemas import Orientation, Position, RenderContext, TemplateConfig

pytestmark = pytest.mark.unit

SVG_NS = "{http://www.w3.org/2000/svg}"
POLICY = DateFormatPolicy()
PNG_LOGO = Asset(content=b"\x89PNG\r\n\x1a\nlogo", mime_type="image/png")


def _svg(
    config: TemplateConfig,
    context: RenderContext | None = None,
    logo: Asset | None = None,
) -> str:
    context = context or RenderContext(user_name="Ana", event_name="PyCon")
    canvas = canvas_for(config.orientation)
    return build_certificate_svg(
        config,
        substitute_all(config, context, POLICY),
        resolve_layout(config, canvas),
        logo,
    )


def _elements(svg: str) -> dict[str, ET.Element]:
    root = ET.fromstring(svg.encode("utf-8"))
    return {el.get("id"): el for el in root.iter() if el.get("id")}


def _text_of(element: ET.Element) -> str:
    return "".join(element.itertext())


class TestBuildCertificateSvg:
    """Tests for build_certificate_svg function."""

    def test_generates_well_formed_svg(self):
        svg = _svg(TemplateConfig(title="Certificado"))
        root = ET.fromstring(svg.encode("utf-8"))
        assert root.tag == f"{SVG_NS}svg"
        assert root.get("viewBox") == "0 0 1200 800"

    def test_portrait_canvas(self):
        svg = _svg(TemplateConfig(orientation=Orientation.PORTRAIT))
        root = ET.fromstring(svg.encode("utf-8"))
        assert root.get("viewBox") == "0 0 800 1200"

    def test_text_elements_are_substituted(self):
        config = TemplateConfig(
            title="Certificado {eventName}",
            subtitle="Sub",
            body_text="{userName} participou",
            footer="Rodapé",
        )
        elements = _elements(_svg(config))

        assert _text_of(elements["title"]) == "Certificado PyCon"
        assert _text_of(elements["subtitle"]) == "Sub"
        assert _text_of(elements["name"]) == "Ana"
        assert _text_of(elements["body"]) == "Ana participou"
        assert _text_of(elements["footer"]) == "Rodapé"

    def test_name_is_centered_on_its_position(self):
        elements = _elements(_svg(TemplateConfig()))
        name = elements["name"]
        assert (name.get("x"), name.get("y")) == ("600", "360")
        assert name.get("text-anchor") == "middle"

    def test_escapes_user_text(self):
        context = RenderContext(user_name='<script>"x"</script> & co')
        svg = _svg(TemplateConfig(), context)

        assert "<script>" not in svg
        assert "&lt;script&gt;" in svg
        assert _text_of(_elements(svg)["name"]) == '<script>"x"</script> & co'

    def test_omits_empty_optional_elements(self):
        elements = _elements(_svg(TemplateConfig(title="", subtitle=None)))
        assert "title" not in elements
        assert "subtitle" not in elements
        assert "footer" not in elements

    def test_long_body_is_wrapped(self):
        config = TemplateConfig(body_text=" ".join(["palavra"] * 80))
        body = _elements(_svg(config))["body"]
        assert len(list(body)) > 1

    def test_border_follows_config(self):
        assert "border" in _elements(_svg(TemplateConfig(show_border=True)))
        assert "border" not in _elements(_svg(TemplateConfig(show_border=False)))
        assert "border" not in _elements(
            _svg(TemplateConfig(show_border=True, border_width=0))
        )

    def test_same_input_same_document(self):
        config = TemplateConfig(title="x", show_watermark=True)
        assert _svg(config) == _svg(config)


class TestWatermark:
    def test_drawn_when_enabled(self):
        config = TemplateConfig(show_watermark=True, watermark_opacity=0.2)
        watermark = _elements(_svg(config))["watermark"]

        assert watermark.get("opacity") == "0.2"
        assert "rotate(-45" in watermark.get("transform")
        assert _text_of(watermark) == "CERTIFICADO"

    def test_absent_when_disabled(self):
        assert "watermark" not in _elements(_svg(TemplateConfig()))

    def test_zero_opacity_differs_only_by_invisible_group(self):
        hidden = _svg(TemplateConfig(show_watermark=False))
        invisible = _svg(TemplateConfig(show_watermark=True, watermark_opacity=0))

        lines = [
            line
            for line in invisible.split("\n")
            if not line.startswith('<g id="watermark"')
        ]
        assert "\n".join(lines) == hidden


class TestLogo:
    def test_logo_embedded_as_data_uri(self):
        config = TemplateConfig(
            logo_url="https://example.com/logo.png",
            logo_position=Position(x=10, y=15),
            logo_size=80,
        )
        logo = _elements(_svg(config, logo=PNG_LOGO))["logo"]

        assert logo.get("href").startswith("data:image/png;base64,")
        # Centered on (120, 120)
        assert (logo.get("x"), logo.get("y")) == ("80", "80")

    def test_missing_logo_is_left_out(self):
        config = TemplateConfig(
            logo_url="https://example.com/logo.png",
            logo_position=Position(x=10, y=15),
        )
        assert "logo" not in _elements(_svg(config, logo=None))


class TestQrCode:
    def test_qr_code_drawn_when_enabled(self):
        config = TemplateConfig(
            include_qr_code=True, qr_code_position=Position(x=90, y=90)
        )
        qr = _elements(_svg(config))["qr-code"]
        modules = list(qr.iter(f"{SVG_NS}rect"))
        # Background plus at least the three finder patterns
        assert len(modules) > 20

    def test_qr_code_absent_by_default(self):
        assert "qr-code" not in _elements(_svg(TemplateConfig()))


class TestSvgConversion:
    """Tests for the CairoSVG converters."""

    def test_svg_to_png_calls_cairosvg(self):
        mock_cairosvg = MagicMock()
        mock_cairosvg.svg2png.return_value = b"\x89PNG"

        with patch.dict("sys.modules", {"cairosvg": mock_cairosvg}):
            result = svg_to_png("<svg></svg>", scale=2.0)

        assert result == b"\x89PNG"
        mock_cairosvg.svg2png.assert_called_once_with(
            bytestring=b"<svg></svg>", scale=2.0
        )

    def test_svg_to_pdf_calls_cairosvg(self):
        mock_cairosvg = MagicMock()
        mock_cairosvg.svg2pdf.return_value = b"%PDF-1.4"

        with patch.dict("sys.modules", {"cairosvg": mock_cairosvg}):
            result = svg_to_pdf("<svg></svg>")

        assert result == b"%PDF-1.4"

    def test_missing_cairo_library_raises_runtime_error(self):
        real_import = builtins.__import__

        def fake_import(name, *args, **kwargs):
            if name == "cairosvg":
                raise OSError("no library called 'cairo' was found")
            return real_import(name, *args, **kwargs)

        with patch.dict("sys.modules"):
            sys.modules.pop("cairosvg", None)
            with patch("builtins.__import__", side_effect=fake_import):
                with pytest.raises(RuntimeError, match="Cairo library"):
                    svg_to_png("<svg></svg>")
