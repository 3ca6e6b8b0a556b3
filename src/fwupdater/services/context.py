"""Per-process session wiring twin client, leases and services together."""

import asyncio
import logging
from typing import Any, Coroutine, Optional

from fwupdater.config import Settings
from fwupdater.services.apply import ApplyService
from fwupdater.services.commands import FirmwareUpdateCommand, RebootCommand
from fwupdater.services.download import DownloadService
from fwupdater.services.lease import DeviceLeaseRegistry
from fwupdater.services.monitor import RemoteMonitor
from fwupdater.services.orchestrator import Applier, Fetcher, UpdateOrchestrator
from fwupdater.services.reboot import RebootService
from fwupdater.services.reporter import FIRMWARE_UPDATE, REBOOT, StatusReporter
from fwupdater.services.twin import HttpTwinClient, InMemoryTwinClient, TwinClient


class UpdaterContext:
    """Explicit session object shared by the API and background runs.

    Owns the twin client and every background task it spawns; aclose()
    cancels whatever is still running.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        twin_client: Optional[TwinClient] = None,
        fetcher: Optional[Fetcher] = None,
        applier: Optional[Applier] = None,
        leases: Optional[DeviceLeaseRegistry] = None,
        reboot_service_factory=None,
    ):
        self.logger = logging.getLogger("fwupdater.context")
        self.settings = settings or Settings()
        if twin_client is None:
            twin_client = (
                HttpTwinClient(self.settings.twin_url)
                if self.settings.twin_url
                else InMemoryTwinClient()
            )
        self.twin_client = twin_client
        self.fetcher = fetcher or DownloadService(
            timeout=self.settings.download_timeout,
            max_size=self.settings.max_image_size,
        )
        self.applier = applier or ApplyService(
            firmware_dir=self.settings.firmware_dir,
            backup_dir=self.settings.backup_dir,
        )
        self.leases = leases or DeviceLeaseRegistry(ttl=self.settings.lease_ttl)
        self._reboot_service_factory = reboot_service_factory
        self._tasks: set[asyncio.Task] = set()

    def reporter_for(self, device_id: str, capability: str = FIRMWARE_UPDATE) -> StatusReporter:
        return StatusReporter(
            self.twin_client,
            device_id,
            namespace=self.settings.namespace,
            capability=capability,
            retries=self.settings.report_retries,
            retry_delay=self.settings.report_retry_delay,
        )

    def orchestrator_for(self, device_id: str) -> UpdateOrchestrator:
        return UpdateOrchestrator(
            self.reporter_for(device_id), self.fetcher, self.applier, leases=self.leases
        )

    def reboot_service_for(self, device_id: str) -> RebootService:
        reporter = self.reporter_for(device_id, REBOOT)
        if self._reboot_service_factory is not None:
            return self._reboot_service_factory(reporter)
        return RebootService(reporter, reboot_command=self.settings.reboot_command)

    def monitor_for(self, device_id: str, capability: str = FIRMWARE_UPDATE, **kwargs) -> RemoteMonitor:
        return RemoteMonitor(
            self.twin_client,
            device_id,
            namespace=self.settings.namespace,
            capability=capability,
            **kwargs,
        )

    def firmware_update_command(self, device_id: str) -> FirmwareUpdateCommand:
        return FirmwareUpdateCommand(self.orchestrator_for(device_id), self.leases, self.spawn)

    def reboot_command(self, device_id: str) -> RebootCommand:
        return RebootCommand(self.reboot_service_for(device_id), self.spawn)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run coro in the background, tracked until it finishes."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(
                f"Background task failed: {task.exception()}", exc_info=task.exception()
            )

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def aclose(self) -> None:
        """Cancel background runs and close the twin client."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            self.logger.info(f"Cancelling {len(tasks)} background task(s)")
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.twin_client.aclose()
