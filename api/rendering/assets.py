"""Remote asset (logo) downloads for certificate backends.

A missing logo never fails a certificate: ``load_logo`` turns every fetch
problem into ``None`` and logs the decision, and the backend simply leaves
the logo out.  Backends call it on every render; nothing is cached here.

RESILIENCE:
- Transient network errors and 5xx responses are retried once with jitter
- The whole fetch, retries included, is bounded by ``asset_fetch_timeout``
- Bodies are streamed and cut off past ``asset_max_bytes``; they must be images
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from core.config import get_settings
from core.http_client import get_http_client
from schemas import TemplateConfig

logger = logging.getLogger(__name__)

_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


class AssetFetchFailedError(Exception):
    """Raised when an asset cannot be downloaded or is not a usable image."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not fetch asset {url}: {reason}")


class _AssetServerError(Exception):
    """5xx from the asset host (retriable)."""


RETRIABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    _AssetServerError,
)


@dataclass(frozen=True)
class Asset:
    content: bytes
    mime_type: str

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def sniff_image_type(content: bytes) -> str | None:
    """Detect the image type from magic bytes; the declared type is not trusted."""
    for signature, mime_type in _IMAGE_SIGNATURES:
        if content.startswith(signature):
            return mime_type
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    head = content[:512].lstrip().lower()
    if head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head):
        return "image/svg+xml"
    return None


@retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential_jitter(initial=0.2, max=1),
    retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
    reraise=True,
)
async def _download(url: str, timeout: float, max_bytes: int) -> tuple[str, bytes]:
    """Stream the body, stopping as soon as it passes ``max_bytes``.

    Returns the declared content type and the body.
    """
    client = await get_http_client()
    async with client.stream("GET", url, timeout=timeout) as response:
        if response.status_code >= 500:
            raise _AssetServerError(f"HTTP {response.status_code}")
        if not response.is_success:
            raise AssetFetchFailedError(url, f"HTTP {response.status_code}")

        too_large = f"body exceeds {max_bytes} bytes"
        declared_length = response.headers.get("content-length", "")
        if declared_length.isdigit() and int(declared_length) > max_bytes:
            raise AssetFetchFailedError(url, too_large)

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > max_bytes:
                raise AssetFetchFailedError(url, too_large)

        return response.headers.get("content-type", ""), bytes(body)


async def fetch_asset(url: str) -> Asset:
    """Download an image asset.

    The whole fetch, retries included, runs under ``asset_fetch_timeout``,
    which settings keep below the per-attempt render budget.

    Raises:
        AssetFetchFailedError: On network failure, timeout, non-2xx status,
            oversized body or content that is not a recognizable image.
    """
    settings = get_settings()
    try:
        async with asyncio.timeout(settings.asset_fetch_timeout):
            content_type, content = await _download(
                url, settings.asset_fetch_timeout, settings.asset_max_bytes
            )
    except TimeoutError as e:
        raise AssetFetchFailedError(
            url, f"no response within {settings.asset_fetch_timeout:g}s"
        ) from e
    except (httpx.HTTPError, _AssetServerError) as e:
        raise AssetFetchFailedError(url, str(e) or type(e).__name__) from e

    if not content:
        raise AssetFetchFailedError(url, "empty body")

    declared = content_type.split(";")[0].strip()
    mime_type = sniff_image_type(content)
    if mime_type is None:
        raise AssetFetchFailedError(url, f"not an image ({declared or 'unknown type'})")

    return Asset(content=content, mime_type=mime_type)


async def load_logo(config: TemplateConfig) -> Asset | None:
    """Fetch the template's logo, or ``None`` when it is absent or unusable."""
    if not config.logo_url:
        return None
    try:
        return await fetch_asset(config.logo_url)
    except AssetFetchFailedError as e:
        logger.warning(
            "asset.fetch_failed",
            extra={
                "url": e.url,
                "reason": e.reason,
                "template_id": config.id,
                "decision": "render_without_logo",
            },
        )
        return None
