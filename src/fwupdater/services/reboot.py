"""Reboot pattern: report lastReboot, then restart the device."""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from fwupdater.errors import ReportError
from fwupdater.models.status import utcnow
from fwupdater.services.process import ProcessManager
from fwupdater.services.reporter import StatusReporter


class RebootService:
    """Handles the reboot direct method for one device."""

    def __init__(
        self,
        reporter: StatusReporter,
        reboot_command: Optional[str] = None,
        reboot_action: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        """Initialize reboot service.

        Args:
            reporter: Reporter bound to the device's reboot capability
            reboot_command: Shell command performing the restart (None = log only)
            reboot_action: Custom async restart hook, overrides reboot_command
        """
        self.logger = logging.getLogger("fwupdater.reboot")
        self.reporter = reporter
        self.reboot_command = reboot_command
        self.reboot_action = reboot_action or self._default_action
        self.process_manager = ProcessManager()

    async def reboot(self) -> datetime:
        """Report the reboot time, then run the restart.

        A failed report is logged and the restart still happens.

        Returns:
            The reported lastReboot instant
        """
        now = utcnow()
        try:
            await self.reporter.report_value({"lastReboot": now.isoformat()})
            self.logger.info("Device reboot twin state reported")
        except ReportError as e:
            self.logger.error(f"Error updating twin before reboot: {e}")

        await self.reboot_action()
        return now

    async def _default_action(self) -> None:
        self.logger.info("Rebooting!")
        if self.reboot_command:
            await self.process_manager.run_command(self.reboot_command)
