"""Remote transformation-service backend (Cloudinary-compatible URL API).

The certificate is described entirely in the request URL: a padded blank
base image with one overlay layer per element.  The service does the
drawing, so this backend needs neither a browser nor Cairo.

RESILIENCE:
- One GET per render, no retry loop (the orchestrator's fallback is the retry)
- Circuit breaker opens after 5 service failures, recovers after 60 seconds

QR codes have no overlay primitive in the URL API and are left out.
"""

import base64
import logging
from urllib.parse import quote

import httpx
from circuitbreaker import CircuitBreakerError, circuit

from core.config import get_settings
from core.http_client import get_http_client
from rendering.assets import load_logo
from rendering.backends.base import (
    InvalidOutputError,
    PNG_SIGNATURE,
    RenderBackend,
    RenderError,
)
from rendering.layout import (
    FOOTER_FONT_SCALE,
    REFERENCE_CANVAS,
    SUBTITLE_FONT_SCALE,
    WATERMARK_ANGLE,
    WATERMARK_FONT_SIZE,
    ResolvedLayout,
    resolve_layout,
)
from rendering.substitution import substitute_all
from schemas import CanvasSize, FontFamily, Point, RenderContext, TemplateConfig

logger = logging.getLogger(__name__)

SERVICE_FONTS: dict[FontFamily, str] = {
    FontFamily.HELVETICA: "Arial",
    FontFamily.TIMES: "Times",
    FontFamily.COURIER: "Courier",
    FontFamily.DEJAVU_SANS: "Verdana",
}


class TransformServiceError(Exception):
    """The transformation service is unreachable or failing (5xx)."""


RETRIABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    TransformServiceError,
)


def encode_text(text: str) -> str:
    """Percent-encode overlay text.

    Commas and slashes separate directives and path segments, so they are
    escaped twice.
    """
    return quote(text, safe="").replace("%2C", "%252C").replace("%2F", "%252F")


def _rgb(color: str) -> str:
    return f"rgb:{color.lstrip('#').lower()}"


def _placement(point: Point, canvas: CanvasSize) -> str:
    dx = round(point.x - canvas.width / 2)
    dy = round(point.y - canvas.height / 2)
    return f"fl_layer_apply,g_center,x_{dx},y_{dy}"


def _text_layer(
    text: str,
    point: Point,
    canvas: CanvasSize,
    *,
    font: str,
    size: float,
    color: str,
    bold: bool = False,
    width: float | None = None,
    extra: str = "",
) -> str:
    weight = "bold" if bold else "normal"
    directive = (
        f"l_text:{font}_{round(size)}_{weight}:{encode_text(text)},"
        f"co_{_rgb(color)}"
    )
    if width:
        directive += f",c_fit,w_{round(width)}"
    if extra:
        directive += f",{extra}"
    return f"{directive}/{_placement(point, canvas)}"


def build_transform_url(
    config: TemplateConfig,
    context: RenderContext,
    canvas: CanvasSize,
    *,
    logo_url: str | None = None,
) -> str:
    """Compose the delivery URL describing the whole certificate.

    Raises:
        RenderError: If no cloud name is configured.
    """
    settings = get_settings()
    if not settings.transform_cloud_name:
        raise RenderError("TRANSFORM_CLOUD_NAME is not configured")

    layout: ResolvedLayout = resolve_layout(config, canvas)
    text = substitute_all(config, context)
    font = SERVICE_FONTS[config.font_family]
    width, height = round(canvas.width), round(canvas.height)

    steps = [f"w_{width},h_{height},c_pad,b_{_rgb(config.background_color)}"]

    if config.show_border and config.border_width > 0:
        steps.append(
            f"bo_{round(config.border_width)}px_solid_{_rgb(config.border_color)}"
        )

    if config.show_watermark and text.watermark:
        steps.append(
            _text_layer(
                text.watermark,
                layout.watermark,
                canvas,
                font=font,
                size=WATERMARK_FONT_SIZE * canvas.width / REFERENCE_CANVAS.width,
                color=config.secondary_color,
                bold=True,
                extra=(
                    f"o_{round(config.watermark_opacity * 100)},"
                    f"a_{round(WATERMARK_ANGLE)}"
                ),
            )
        )

    if logo_url and layout.logo is not None:
        fetch_id = base64.urlsafe_b64encode(logo_url.encode("utf-8")).decode("ascii")
        size = round(config.logo_size)
        steps.append(
            f"l_fetch:{fetch_id},w_{size},h_{size},c_fit/"
            f"{_placement(layout.logo, canvas)}"
        )

    elements = [
        (text.title, layout.title, config.title_font_size, config.primary_color, True),
        (
            text.subtitle,
            layout.subtitle,
            config.title_font_size * SUBTITLE_FONT_SCALE,
            config.secondary_color,
            False,
        ),
        (text.name, layout.name, config.name_font_size, config.primary_color, True),
        (text.body, layout.body, config.body_font_size, config.secondary_color, False),
        (
            text.footer,
            layout.footer,
            config.body_font_size * FOOTER_FONT_SCALE,
            config.secondary_color,
            False,
        ),
    ]
    for content, point, size, color, bold in elements:
        if not content:
            continue
        steps.append(
            _text_layer(
                content,
                point,
                canvas,
                font=font,
                size=size,
                color=color,
                bold=bold,
                width=layout.text_width,
            )
        )

    base_url = settings.transform_base_url.rstrip("/")
    return (
        f"{base_url}/{settings.transform_cloud_name}/image/upload/"
        f"{'/'.join(steps)}/{settings.transform_base_image}.png"
    )


@circuit(
    failure_threshold=5,
    recovery_timeout=60,
    expected_exception=RETRIABLE_EXCEPTIONS,
    name="transform_service_circuit",
)
async def _download_image(url: str) -> httpx.Response:
    """Internal: single GET against the service, guarded by the circuit."""
    client = await get_http_client()
    response = await client.get(url)
    if response.status_code >= 500:
        raise TransformServiceError(f"HTTP {response.status_code}")
    return response


class RemoteBackend(RenderBackend):
    name = "remote"
    mime_type = "image/png"

    async def render(
        self,
        config: TemplateConfig,
        context: RenderContext,
        canvas: CanvasSize,
    ) -> bytes:
        if not get_settings().transform_cloud_name:
            raise RenderError("TRANSFORM_CLOUD_NAME is not configured")

        # The service fetches the logo itself; check it first so an
        # unreachable logo drops the layer instead of failing the image.
        logo = await load_logo(config)
        url = build_transform_url(
            config,
            context,
            canvas,
            logo_url=config.logo_url if logo else None,
        )

        try:
            response = await _download_image(url)
        except CircuitBreakerError as e:
            raise RenderError("Transformation service circuit is open") from e
        except RETRIABLE_EXCEPTIONS as e:
            raise RenderError(f"Transformation service failed: {e}") from e

        if not response.is_success:
            detail = response.headers.get("x-cld-error", "")
            raise RenderError(
                f"Transformation service returned HTTP {response.status_code}"
                + (f": {detail}" if detail else "")
            )

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise RenderError(f"Unexpected content type: {content_type or 'none'}")

        content = response.content
        if not content.startswith(PNG_SIGNATURE):
            raise InvalidOutputError("Transformation service returned invalid PNG")

        logger.debug(
            "render.remote.downloaded",
            extra={"template_id": config.id, "size_bytes": len(content)},
        )
        return content
