"""Per-device exclusive leases guarding update runs."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from fwupdater.errors import UpdateInProgressError


@dataclass
class TwinHandle:
    """Exclusive write access to one device's reported subtree for one run."""

    device_id: str
    expires_at: float
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    released: bool = False


class DeviceLeaseRegistry:
    """In-process lease table, one live lease per device.

    A lease that outlives its ttl is considered abandoned and may be taken
    over by the next acquire.
    """

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.logger = logging.getLogger("fwupdater.lease")
        self.ttl = ttl
        self._clock = clock
        self._leases: dict[str, TwinHandle] = {}

    def current(self, device_id: str) -> Optional[TwinHandle]:
        """Return the live lease for device_id, if any."""
        handle = self._leases.get(device_id)
        if handle is None:
            return None
        if handle.released or handle.expires_at <= self._clock():
            return None
        return handle

    def is_held(self, device_id: str) -> bool:
        return self.current(device_id) is not None

    def acquire(self, device_id: str) -> TwinHandle:
        """Take the lease for device_id.

        Raises:
            UpdateInProgressError: If another run holds a live lease
        """
        holder = self.current(device_id)
        if holder is not None:
            raise UpdateInProgressError(device_id, holder.run_id)

        stale = self._leases.get(device_id)
        if stale is not None and not stale.released:
            self.logger.warning(
                f"Lease {stale.run_id} on {device_id} expired, taking over"
            )

        handle = TwinHandle(device_id=device_id, expires_at=self._clock() + self.ttl)
        self._leases[device_id] = handle
        self.logger.info(f"Lease {handle.run_id} acquired on {device_id}")
        return handle

    def release(self, handle: TwinHandle) -> None:
        """Release handle; releasing twice or after takeover is a no-op."""
        if handle.released:
            return
        handle.released = True
        if self._leases.get(handle.device_id) is handle:
            del self._leases[handle.device_id]
        self.logger.info(f"Lease {handle.run_id} released on {handle.device_id}")
