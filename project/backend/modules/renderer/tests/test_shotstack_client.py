"""
Tests for the Shotstack client.
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from modules.renderer.shotstack_client import (
    RenderStatus,
    download_render,
    get_render_status,
    submit_render,
)
from shared.errors import RenderFailedError, RenderSubmissionError, RetryableError


def _http_client(*responses, method="post", error=None):
    client = MagicMock()
    setattr(client, method, AsyncMock(side_effect=error or list(responses)))
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=client)
    context.__aexit__ = AsyncMock(return_value=False)
    factory = Mock(return_value=context)
    factory.client = client
    return factory


def _response(status_code=200, body=None, content=b""):
    response = MagicMock()
    response.status_code = status_code
    response.json = Mock(return_value=body or {})
    response.text = str(body)
    response.content = content
    response.raise_for_status = Mock()
    return response


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("shared.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


def test_render_status_finished():
    assert RenderStatus(render_id="r", status="done").finished
    assert RenderStatus(render_id="r", status="failed").finished
    assert not RenderStatus(render_id="r", status="rendering").finished


@pytest.mark.asyncio
async def test_submit_render_returns_id():
    http = _http_client(_response(201, {"success": True, "response": {"id": "render-1"}}))

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        assert await submit_render({"timeline": {}}, job_id="v1") == "render-1"

    url = http.client.post.call_args.args[0]
    assert url.endswith("/render")
    assert "x-api-key" in http.client.post.call_args.kwargs["headers"]


@pytest.mark.asyncio
async def test_submit_render_retries_rate_limits():
    http = _http_client(_response(429), _response(201, {"response": {"id": "render-2"}}))

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        assert await submit_render({}) == "render-2"

    assert http.client.post.await_count == 2


@pytest.mark.asyncio
async def test_submit_render_rejected_edit():
    http = _http_client(_response(400, {"message": "Invalid timeline"}))

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        with pytest.raises(RenderSubmissionError, match="rejected"):
            await submit_render({})

    assert http.client.post.await_count == 1


@pytest.mark.asyncio
async def test_submit_render_missing_id():
    http = _http_client(_response(201, {"response": {}}))

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        with pytest.raises(RenderSubmissionError, match="no render id"):
            await submit_render({})


@pytest.mark.asyncio
async def test_get_render_status():
    http = _http_client(
        _response(200, {"response": {"status": "done", "url": "https://cdn.shotstack/out.mp4"}}),
        method="get",
    )

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        status = await get_render_status("render-1")

    assert status.status == "done"
    assert status.url == "https://cdn.shotstack/out.mp4"
    assert http.client.get.call_args.args[0].endswith("/render/render-1")


@pytest.mark.asyncio
async def test_get_render_status_defaults_to_queued():
    http = _http_client(_response(200, {"response": {}}), method="get")

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        assert (await get_render_status("render-1")).status == "queued"


@pytest.mark.asyncio
async def test_download_render():
    http = _http_client(_response(content=b"mp4"), method="get")

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        assert await download_render("https://cdn.shotstack/out.mp4") == b"mp4"


@pytest.mark.asyncio
async def test_download_render_empty():
    http = _http_client(_response(content=b""), method="get")

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        with pytest.raises(RenderFailedError, match="empty"):
            await download_render("https://cdn.shotstack/out.mp4")


@pytest.mark.asyncio
async def test_download_render_timeout_exhausts_retries():
    http = _http_client(method="get", error=httpx.ReadTimeout("timed out"))

    with patch("modules.renderer.shotstack_client.httpx.AsyncClient", http):
        with pytest.raises(RetryableError, match="Failed to download render"):
            await download_render("https://cdn.shotstack/out.mp4")

    assert http.client.get.await_count == 3
