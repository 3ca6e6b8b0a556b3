"""Unit tests for DownloadService."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from fwupdater.errors import DownloadError
from fwupdater.services.download import DownloadService


# Helper to create async iterator
async def async_iterator(items):
    """Create an async iterator from a list of items."""
    for item in items:
        yield item


def _mock_client(chunks=None, raise_for_status=None, stream_error=None):
    mock_response = AsyncMock()
    mock_response.raise_for_status = MagicMock(side_effect=raise_for_status)
    mock_response.aiter_bytes = lambda chunk_size: async_iterator(chunks or [])
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_client = AsyncMock()
    if stream_error is not None:
        mock_client.stream = MagicMock(side_effect=stream_error)
    else:
        mock_client.stream = MagicMock(return_value=mock_response)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    return mock_client


@pytest.mark.unit
class TestDownloadService:
    """Test DownloadService in isolation."""

    @pytest.mark.asyncio
    async def test_fetch_returns_all_chunks(self):
        mock_client = _mock_client(chunks=[b"abc", b"def"])

        with patch("fwupdater.services.download.httpx.AsyncClient", return_value=mock_client):
            image = await DownloadService().fetch("https://pkg/fw.bin")

        assert image == b"abcdef"
        mock_client.stream.assert_called_once_with("GET", "https://pkg/fw.bin")

    @pytest.mark.asyncio
    async def test_timeout_maps_to_504(self):
        mock_client = _mock_client(stream_error=httpx.ReadTimeout("timed out"))

        with patch("fwupdater.services.download.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(DownloadError) as exc_info:
                await DownloadService().fetch("https://pkg/fw.bin")

        assert exc_info.value.code == 504
        assert "timeout" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_http_status_passed_through(self):
        request = httpx.Request("GET", "https://pkg/fw.bin")
        response = httpx.Response(404, request=request)
        error = httpx.HTTPStatusError("not found", request=request, response=response)
        mock_client = _mock_client(raise_for_status=error)

        with patch("fwupdater.services.download.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(DownloadError) as exc_info:
                await DownloadService().fetch("https://pkg/fw.bin")

        assert exc_info.value.code == 404

    @pytest.mark.asyncio
    async def test_connect_error_maps_to_503(self):
        mock_client = _mock_client(stream_error=httpx.ConnectError("refused"))

        with patch("fwupdater.services.download.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(DownloadError) as exc_info:
                await DownloadService().fetch("https://pkg/fw.bin")

        assert exc_info.value.code == 503

    @pytest.mark.asyncio
    async def test_oversized_image_rejected(self):
        mock_client = _mock_client(chunks=[b"x" * 6, b"x" * 6])

        with patch("fwupdater.services.download.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(DownloadError) as exc_info:
                await DownloadService(max_size=10).fetch("https://pkg/fw.bin")

        assert exc_info.value.code == 413
