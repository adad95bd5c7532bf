"""Tests for logo/asset downloads."""

import asyncio
import logging
import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from rendering.assets import (
    Asset,
    AssetFetchFailedError,
    fetch_asset,
    load_logo,
    sniff_image_type,
)
from schemas import Position, RenderContext, RenderedResult, TemplateConfig
from services.certificates_service import generate

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
LOGO_URL = "https://cdn.example.com/logo.png"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _patch_client(handler):
    return patch(
        "rendering.assets.get_http_client",
        new=AsyncMock(return_value=_client(handler)),
    )


def _with_logo(**overrides) -> TemplateConfig:
    return TemplateConfig(
        id="tpl-logo",
        logo_url=LOGO_URL,
        logo_position=Position(x=10, y=15),
        **overrides,
    )


@pytest.mark.unit
class TestSniffImageType:
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            (PNG, "image/png"),
            (b"\xff\xd8\xff\xe0JFIF", "image/jpeg"),
            (b"GIF89a....", "image/gif"),
            (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
            (b'<svg xmlns="http://www.w3.org/2000/svg"/>', "image/svg+xml"),
            (b'<?xml version="1.0"?>\n<svg/>', "image/svg+xml"),
            (b"<html><body>not found</body></html>", None),
            (b"", None),
        ],
    )
    def test_detects_by_magic_bytes(self, content, expected):
        assert sniff_image_type(content) == expected


@pytest.mark.unit
class TestAsset:
    def test_data_uri(self):
        asset = Asset(content=b"abc", mime_type="image/png")
        assert asset.to_data_uri() == "data:image/png;base64,YWJj"


@pytest.mark.unit
class TestFetchAsset:
    async def test_returns_image(self):
        def handler(request):
            return httpx.Response(200, content=PNG, headers={"content-type": "image/png"})

        with _patch_client(handler):
            asset = await fetch_asset(LOGO_URL)

        assert asset == Asset(content=PNG, mime_type="image/png")

    async def test_trusts_bytes_over_declared_type(self):
        def handler(request):
            return httpx.Response(
                200, content=PNG, headers={"content-type": "application/octet-stream"}
            )

        with _patch_client(handler):
            asset = await fetch_asset(LOGO_URL)

        assert asset.mime_type == "image/png"

    async def test_not_found_raises(self):
        with _patch_client(lambda request: httpx.Response(404)):
            with pytest.raises(AssetFetchFailedError, match="HTTP 404"):
                await fetch_asset(LOGO_URL)

    async def test_non_image_raises(self):
        def handler(request):
            return httpx.Response(
                200, content=b"<html></html>", headers={"content-type": "text/html"}
            )

        with _patch_client(handler):
            with pytest.raises(AssetFetchFailedError, match="not an image"):
                await fetch_asset(LOGO_URL)

    async def test_empty_body_raises(self):
        with _patch_client(lambda request: httpx.Response(200, content=b"")):
            with pytest.raises(AssetFetchFailedError, match="empty body"):
                await fetch_asset(LOGO_URL)

    async def test_oversized_body_raises(self, monkeypatch):
        monkeypatch.setenv("ASSET_MAX_BYTES", "10")
        with _patch_client(lambda request: httpx.Response(200, content=PNG)):
            with pytest.raises(AssetFetchFailedError, match="exceeds 10 bytes"):
                await fetch_asset(LOGO_URL)

    async def test_declared_length_over_cap_skips_body(self, monkeypatch):
        monkeypatch.setenv("ASSET_MAX_BYTES", "1024")
        started = []

        async def body():
            started.append(True)
            yield PNG

        def handler(request):
            return httpx.Response(
                200, content=body(), headers={"content-length": "1000000"}
            )

        with _patch_client(handler):
            with pytest.raises(AssetFetchFailedError, match="exceeds 1024 bytes"):
                await fetch_asset(LOGO_URL)

        assert started == []

    async def test_stream_stops_once_past_cap(self, monkeypatch):
        monkeypatch.setenv("ASSET_MAX_BYTES", "1024")
        sent = []

        async def body():
            for _ in range(100):
                sent.append(512)
                yield PNG + b"\x00" * (512 - len(PNG))

        with _patch_client(lambda request: httpx.Response(200, content=body())):
            with pytest.raises(AssetFetchFailedError, match="exceeds 1024 bytes"):
                await fetch_asset(LOGO_URL)

        assert len(sent) < 100
        assert sum(sent) <= 4 * 512

    async def test_server_error_is_retried_once(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, content=PNG)

        with _patch_client(handler):
            asset = await fetch_asset(LOGO_URL)

        assert len(calls) == 2
        assert asset.mime_type == "image/png"

    async def test_network_error_raises_after_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        with _patch_client(handler):
            with pytest.raises(AssetFetchFailedError, match="refused"):
                await fetch_asset(LOGO_URL)

        assert len(calls) == 2


@pytest.mark.unit
class TestLoadLogo:
    async def test_no_logo_configured(self):
        with patch("rendering.assets.fetch_asset", new=AsyncMock()) as fetch:
            assert await load_logo(TemplateConfig()) is None
        fetch.assert_not_awaited()

    async def test_returns_fetched_logo(self):
        asset = Asset(content=PNG, mime_type="image/png")
        with patch("rendering.assets.fetch_asset", new=AsyncMock(return_value=asset)):
            assert await load_logo(_with_logo()) == asset

    async def test_failure_is_logged_and_skipped(self, caplog):
        error = AssetFetchFailedError(LOGO_URL, "HTTP 404")
        with patch("rendering.assets.fetch_asset", new=AsyncMock(side_effect=error)):
            with caplog.at_level(logging.WARNING, logger="rendering.assets"):
                assert await load_logo(_with_logo()) is None

        record = next(r for r in caplog.records if r.message == "asset.fetch_failed")
        assert record.url == LOGO_URL
        assert record.reason == "HTTP 404"
        assert record.decision == "render_without_logo"
        assert record.template_id == "tpl-logo"


@pytest.fixture
async def silent_logo_url():
    """A host that accepts connections and never answers."""
    writers = []

    async def accept(reader, writer):
        writers.append(writer)
        await reader.read()

    server = await asyncio.start_server(accept, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"http://127.0.0.1:{port}/logo.png"

    for writer in writers:
        writer.close()
    server.close()


@pytest.fixture
async def real_client():
    async with httpx.AsyncClient(trust_env=False) as client:
        with patch(
            "rendering.assets.get_http_client", new=AsyncMock(return_value=client)
        ):
            yield client


@pytest.mark.integration
class TestUnresponsiveLogoHost:
    """A logo host that never replies must not cost the certificate."""

    async def test_fetch_gives_up_within_asset_budget(
        self, monkeypatch, silent_logo_url, real_client
    ):
        monkeypatch.setenv("ASSET_FETCH_TIMEOUT", "0.3")
        started = time.perf_counter()

        with pytest.raises(AssetFetchFailedError, match="no response within 0.3s"):
            await fetch_asset(silent_logo_url)

        assert time.perf_counter() - started < 2

    async def test_certificate_renders_without_logo(
        self, monkeypatch, silent_logo_url, real_client
    ):
        monkeypatch.setenv("RENDER_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("ASSET_FETCH_TIMEOUT", "0.5")
        config = TemplateConfig(
            id="tpl-silent-logo",
            logo_url=silent_logo_url,
            logo_position=Position(x=10, y=15),
        )

        result = await generate(config, RenderContext(user_name="Ana"), ["vector"])

        assert isinstance(result, RenderedResult)
        assert result.backend == "vector"
        assert [a.status.value for a in result.attempts] == ["success"]
        assert b'id="logo"' not in result.content
