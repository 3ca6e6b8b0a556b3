"""Shared twin document clients (reported-properties store)."""

import copy
import logging
from typing import Any, Optional

import httpx

from fwupdater.errors import TwinClientError

VERSION_KEY = "$version"


def merge_patch(target: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Apply a JSON merge patch (RFC 7386) and return the merged copy.

    Nested maps are merged key by key, a None value removes the key and any
    other value replaces what was there.
    """
    result = copy.deepcopy(target)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict):
            current = result.get(key)
            result[key] = merge_patch(current if isinstance(current, dict) else {}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def get_path(document: dict[str, Any], *keys: str) -> Optional[Any]:
    """Walk nested maps, returning None as soon as a key is missing."""
    node: Any = document
    for key in keys:
        if not isinstance(node, dict) or node.get(key) is None:
            return None
        node = node[key]
    return node


class TwinClient:
    """Access to per-device twin documents.

    A twin looks like:
        {
            "deviceId": "dev-1",
            "properties": {
                "desired": {"$version": 1},
                "reported": {"$version": 4, "iothubDM": {...}}
            }
        }
    """

    async def get_twin(self, device_id: str) -> dict[str, Any]:
        """Return the full twin document for device_id."""
        raise NotImplementedError

    async def update_reported(self, device_id: str, patch: dict[str, Any]) -> int:
        """Merge patch into the reported properties, return the new version."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release client resources."""


class InMemoryTwinClient(TwinClient):
    """Process-local twin store with merge-patch writes and version counting.

    Reads return deep copies, so a caller never observes a half-applied
    write and cannot mutate the stored document.
    """

    def __init__(self):
        self.logger = logging.getLogger("fwupdater.twin")
        self._twins: dict[str, dict[str, Any]] = {}

    def _twin(self, device_id: str) -> dict[str, Any]:
        if device_id not in self._twins:
            self._twins[device_id] = {
                "deviceId": device_id,
                "properties": {
                    "desired": {VERSION_KEY: 1},
                    "reported": {VERSION_KEY: 1},
                },
            }
            self.logger.debug(f"Created twin for {device_id}")
        return self._twins[device_id]

    async def get_twin(self, device_id: str) -> dict[str, Any]:
        return copy.deepcopy(self._twin(device_id))

    async def update_reported(self, device_id: str, patch: dict[str, Any]) -> int:
        if not isinstance(patch, dict):
            raise TwinClientError(f"Reported patch must be a map, got {type(patch).__name__}")

        twin = self._twin(device_id)
        reported = twin["properties"]["reported"]
        patch = {k: v for k, v in patch.items() if k != VERSION_KEY}
        merged = merge_patch(reported, patch)
        merged[VERSION_KEY] = reported[VERSION_KEY] + 1
        twin["properties"]["reported"] = merged
        self.logger.debug(f"Reported properties of {device_id} now at version {merged[VERSION_KEY]}")
        return merged[VERSION_KEY]


class HttpTwinClient(TwinClient):
    """Twin client for a remote fwupdater service (or compatible API)."""

    def __init__(self, base_url: str = "http://localhost:12316", timeout: float = 5.0):
        """Initialize HTTP twin client.

        Args:
            base_url: Base URL of the service hosting the twins
            timeout: Per-request timeout in seconds
        """
        self.logger = logging.getLogger("fwupdater.twin")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _twin_url(self, device_id: str) -> str:
        return f"{self.base_url}/api/v1.0/devices/{device_id}/twin"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise TwinClientError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise TwinClientError(f"{method} {url} returned invalid JSON: {e}") from e

        if not isinstance(body, dict) or body.get("code") != 200:
            msg = body.get("msg") if isinstance(body, dict) else body
            raise TwinClientError(f"{method} {url} rejected: {msg}")
        return body.get("data")

    async def get_twin(self, device_id: str) -> dict[str, Any]:
        twin = await self._request("GET", self._twin_url(device_id))
        if not isinstance(twin, dict):
            raise TwinClientError(f"Twin for {device_id} is not a map")
        return twin

    async def update_reported(self, device_id: str, patch: dict[str, Any]) -> int:
        data = await self._request("PATCH", f"{self._twin_url(device_id)}/reported", json=patch)
        if not isinstance(data, dict) or not isinstance(data.get(VERSION_KEY), int):
            raise TwinClientError(f"Reported update for {device_id} returned no {VERSION_KEY}: {data!r}")
        return data[VERSION_KEY]
