"""Download capability: fetch a firmware image over HTTPS."""

import logging

import httpx

from fwupdater.errors import DownloadError


class DownloadService:
    """Streams firmware images into memory with a size cap."""

    def __init__(
        self,
        timeout: float = 30.0,
        max_size: int = 64 * 1024 * 1024,
        chunk_size: int = 64 * 1024,
    ):
        """Initialize download service.

        Args:
            timeout: Request timeout in seconds
            max_size: Largest accepted image in bytes
            chunk_size: Stream chunk size (64KB for progress granularity)
        """
        self.logger = logging.getLogger("fwupdater.download")
        self.timeout = timeout
        self.max_size = max_size
        self.chunk_size = chunk_size

    async def fetch(self, uri: str) -> bytes:
        """Download the image at uri.

        Returns:
            Image bytes

        Raises:
            DownloadError: 504 on timeout, the HTTP status on error responses,
                413 if the image exceeds max_size, 503 on other transport errors
        """
        self.logger.info(f"Downloading image from {uri}")
        image = bytearray()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                async with client.stream("GET", uri) as response:
                    response.raise_for_status()

                    last_logged = 0
                    async for chunk in response.aiter_bytes(chunk_size=self.chunk_size):
                        image.extend(chunk)
                        if len(image) > self.max_size:
                            raise DownloadError(
                                413, f"Image exceeds {self.max_size} bytes"
                            )
                        if len(image) - last_logged >= 1024 * 1024:
                            last_logged = len(image)
                            self.logger.debug(f"Download progress: {len(image)} bytes")

        except httpx.TimeoutException as e:
            raise DownloadError(504, f"timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                e.response.status_code,
                f"HTTP {e.response.status_code} from {uri}",
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(503, f"Download failed: {e}") from e

        self.logger.info(f"Downloaded {len(image)} bytes")
        return bytes(image)
