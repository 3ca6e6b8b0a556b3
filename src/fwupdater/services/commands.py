"""Direct method handlers that start device-management patterns."""

import logging
from typing import Any, Callable, Coroutine, Optional

from pydantic import BaseModel, Field

from fwupdater.errors import InvalidPackageUriError, UpdateInProgressError
from fwupdater.models.request import UpdateRequest
from fwupdater.services.lease import DeviceLeaseRegistry
from fwupdater.services.orchestrator import UpdateOrchestrator
from fwupdater.services.reboot import RebootService

Spawner = Callable[[Coroutine[Any, Any, Any]], Any]


class MethodResponse(BaseModel):
    """Result returned to the party invoking a direct method."""

    status: int = Field(..., description="HTTP-like result code (200/400/409)")
    payload: str = Field(..., description="Human-readable result")


class FirmwareUpdateCommand:
    """firmwareUpdate direct method for one device."""

    method_name = "firmwareUpdate"

    def __init__(
        self,
        orchestrator: UpdateOrchestrator,
        leases: DeviceLeaseRegistry,
        spawn: Spawner,
    ):
        """Initialize command.

        Args:
            orchestrator: Orchestrator bound to the target device
            leases: Lease registry guarding the device
            spawn: Schedules the run coroutine in the background
        """
        self.logger = logging.getLogger("fwupdater.commands")
        self.orchestrator = orchestrator
        self.leases = leases
        self.spawn = spawn

    def invoke(self, payload: Optional[dict[str, Any]]) -> MethodResponse:
        """Validate payload and start the update run.

        Nothing is reported to the twin unless the request is accepted.
        """
        uri = (payload or {}).get("fwPackageUri")
        device_id = self.orchestrator.device_id

        try:
            request = UpdateRequest.from_uri(uri)
        except InvalidPackageUriError as e:
            self.logger.warning(f"Rejected {self.method_name} on {device_id}: {uri!r}")
            return MethodResponse(status=e.code, payload=str(e))

        try:
            handle = self.leases.acquire(device_id)
        except UpdateInProgressError as e:
            self.logger.warning(str(e))
            return MethodResponse(status=e.code, payload=str(e))

        self.spawn(self.orchestrator.run(request, handle))
        self.logger.info(f"Response to method '{self.method_name}' sent for {device_id}")
        return MethodResponse(status=200, payload="Firmware update started.")


class RebootCommand:
    """reboot direct method for one device."""

    method_name = "reboot"

    def __init__(self, reboot_service: RebootService, spawn: Spawner):
        self.logger = logging.getLogger("fwupdater.commands")
        self.reboot_service = reboot_service
        self.spawn = spawn

    def invoke(self, payload: Optional[dict[str, Any]] = None) -> MethodResponse:
        self.spawn(self.reboot_service.reboot())
        self.logger.info(f"Response to method '{self.method_name}' sent")
        return MethodResponse(status=200, payload="Reboot started")
