"""Global pytest fixtures and configuration."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fwupdater.errors import ApplyError, DownloadError, TwinClientError  # noqa: E402
from fwupdater.services.reporter import StatusReporter  # noqa: E402
from fwupdater.services.twin import InMemoryTwinClient  # noqa: E402


class RecordingTwinClient(InMemoryTwinClient):
    """In-memory twin that records every patch and can be told to fail."""

    def __init__(self, fail_writes: int = 0):
        super().__init__()
        self.patches: list[tuple[str, dict[str, Any]]] = []
        self.fail_writes = fail_writes
        self.write_attempts = 0

    async def update_reported(self, device_id: str, patch: dict[str, Any]) -> int:
        self.write_attempts += 1
        if self.fail_writes:
            self.fail_writes -= 1
            raise TwinClientError("twin unavailable")
        self.patches.append((device_id, patch))
        return await super().update_reported(device_id, patch)

    def reported_phases(self, device_id: str = "dev-1") -> list[str]:
        return [
            p["iothubDM"]["firmwareUpdate"]["phase"]
            for d, p in self.patches
            if d == device_id and "firmwareUpdate" in p.get("iothubDM", {})
        ]


class FakeFetcher:
    """Download capability returning fixed bytes after a short delay."""

    def __init__(self, image: bytes = b"[fake image data]", error: Optional[DownloadError] = None,
                 delay: float = 0.01):
        self.image = image
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def fetch(self, uri: str) -> bytes:
        self.calls.append(uri)
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.image


class FakeApplier:
    """Apply capability recording what it was asked to apply."""

    def __init__(self, error: Optional[ApplyError] = None, delay: float = 0.01):
        self.error = error
        self.delay = delay
        self.applied: list[bytes] = []

    async def apply(self, image: bytes) -> None:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.applied.append(image)


@pytest.fixture
def twin_client():
    return RecordingTwinClient()


@pytest.fixture
def reporter(twin_client):
    return StatusReporter(twin_client, "dev-1")


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def applier():
    return FakeApplier()
