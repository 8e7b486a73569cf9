"""Tests for room photo loading (data URLs and HTTP downloads)."""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from temporalio.exceptions import ApplicationError

from tests.helpers import make_mpo_bytes, make_photo_bytes
from visualizer.utils.http import fetch_photo, load_photo


def _mock_response(
    status_code: int, content: bytes = b"", content_type: str | None = None
) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.headers = {"content-type": content_type} if content_type else {}
    return response


def _client(response: MagicMock | None = None, error: Exception | None = None) -> AsyncMock:
    client = AsyncMock()
    if error is not None:
        client.get.side_effect = error
    else:
        client.get.return_value = response
    return client


class TestFetchPhoto:
    @pytest.mark.asyncio
    async def test_success_detects_mime_from_bytes(self) -> None:
        data = make_photo_bytes(fmt="PNG")
        # Served with a misleading header; the image header wins
        client = _client(_mock_response(200, data, "image/jpeg"))
        photo = await fetch_photo(client, "https://example.com/room.jpg")
        assert photo.data == data
        assert photo.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_404_non_retryable(self) -> None:
        client = _client(_mock_response(404))
        with pytest.raises(ApplicationError, match="HTTP 404") as exc_info:
            await fetch_photo(client, "https://example.com/missing.jpg")
        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_throttle_and_server_errors_retryable(self, status: int) -> None:
        client = _client(_mock_response(status))
        with pytest.raises(ApplicationError) as exc_info:
            await fetch_photo(client, "https://example.com/room.jpg")
        assert not exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_wrong_content_type(self) -> None:
        client = _client(_mock_response(200, b"<html>nope</html>", "text/html"))
        with pytest.raises(ApplicationError, match="Expected image") as exc_info:
            await fetch_photo(client, "https://example.com/page.html")
        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_corrupt_image_non_retryable(self) -> None:
        client = _client(_mock_response(200, b"\xff\xd8broken", "image/jpeg"))
        with pytest.raises(ApplicationError, match="corrupt") as exc_info:
            await fetch_photo(client, "https://example.com/room.jpg")
        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_timeout_retryable(self) -> None:
        client = _client(error=httpx.TimeoutException("timed out"))
        with pytest.raises(ApplicationError, match="Timeout") as exc_info:
            await fetch_photo(client, "https://example.com/slow.jpg")
        assert not exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_network_error_retryable(self) -> None:
        client = _client(error=httpx.ConnectError("refused"))
        with pytest.raises(ApplicationError, match="Network error") as exc_info:
            await fetch_photo(client, "https://example.com/room.jpg")
        assert not exc_info.value.non_retryable


class TestLoadPhoto:
    @pytest.mark.asyncio
    async def test_data_url(self) -> None:
        data = make_photo_bytes()
        url = f"data:image/jpeg;base64,{base64.b64encode(data).decode()}"
        photo = await load_photo(url)
        assert photo.data == data
        assert photo.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_phone_mpo_upload_labelled_jpeg(self) -> None:
        data = make_mpo_bytes()
        url = f"data:image/jpeg;base64,{base64.b64encode(data).decode()}"
        photo = await load_photo(url)
        assert photo.data == data
        assert photo.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_bmp_upload_reencoded_as_png(self) -> None:
        url = f"data:image/bmp;base64,{base64.b64encode(make_photo_bytes(fmt='BMP')).decode()}"
        photo = await load_photo(url)
        assert photo.mime_type == "image/png"
        assert photo.data.startswith(b"\x89PNG")

    @pytest.mark.asyncio
    async def test_invalid_base64_non_retryable(self) -> None:
        with pytest.raises(ApplicationError, match="not valid base64") as exc_info:
            await load_photo("data:image/jpeg;base64,@@not-base64@@")
        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_data_url_with_non_image_payload(self) -> None:
        url = f"data:image/png;base64,{base64.b64encode(b'hello').decode()}"
        with pytest.raises(ApplicationError) as exc_info:
            await load_photo(url)
        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_https_url_uses_async_client(self) -> None:
        data = make_photo_bytes()
        with patch("httpx.AsyncClient") as mock_async_client:
            mock_client = _client(_mock_response(200, data, "image/jpeg"))
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            mock_async_client.return_value = mock_client

            photo = await load_photo("https://example.com/room.jpg", timeout=5.0)

        assert photo.data == data
        mock_client.get.assert_awaited_once_with("https://example.com/room.jpg", timeout=5.0)
