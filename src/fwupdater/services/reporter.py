"""Status reporting into the twin's reported properties."""

import asyncio
import json
import logging
from typing import Any, Iterable

from fwupdater.errors import ReportError, TwinClientError
from fwupdater.models.status import StatusRecord
from fwupdater.services.twin import TwinClient

DEFAULT_NAMESPACE = "iothubDM"
FIRMWARE_UPDATE = "firmwareUpdate"
REBOOT = "reboot"

# Every key a StatusRecord may put on the wire
RECORD_KEYS = ("phase", "timestamp", "error", "packageUri")


class StatusReporter:
    """Writes one capability's status under <namespace>.<capability>."""

    def __init__(
        self,
        twin_client: TwinClient,
        device_id: str,
        namespace: str = DEFAULT_NAMESPACE,
        capability: str = FIRMWARE_UPDATE,
        retries: int = 0,
        retry_delay: float = 0.5,
    ):
        """Initialize status reporter.

        Args:
            twin_client: Shared document client
            device_id: Device whose reported properties are written
            namespace: Top-level key grouping all pattern status
            capability: Sub-key of the reported capability
            retries: Extra attempts after a failed write (0 = no retry)
            retry_delay: Seconds between attempts
        """
        self.logger = logging.getLogger("fwupdater.reporter")
        self.twin_client = twin_client
        self.device_id = device_id
        self.namespace = namespace
        self.capability = capability
        self.retries = retries
        self.retry_delay = retry_delay

    def build_patch(self, value: dict[str, Any], clear_keys: Iterable[str] = ()) -> dict[str, Any]:
        """Wrap value in the namespace envelope.

        Keys listed in clear_keys and missing from value are sent as None so
        the previous record's leftovers are removed.
        """
        body: dict[str, Any] = {key: None for key in clear_keys}
        body.update(value)
        return {self.namespace: {self.capability: body}}

    async def report(self, record: StatusRecord) -> None:
        """Overwrite the capability's current record with record.

        Raises:
            ReportError: If the twin write failed after all attempts
        """
        await self.report_value(record.to_twin_value(), clear_keys=RECORD_KEYS)

    async def report_value(self, value: dict[str, Any], clear_keys: Iterable[str] = ()) -> None:
        """Merge a raw capability map into the reported properties.

        Raises:
            ReportError: If the twin write failed after all attempts
        """
        patch = self.build_patch(value, clear_keys)
        attempts = self.retries + 1

        for attempt in range(1, attempts + 1):
            try:
                version = await self.twin_client.update_reported(self.device_id, patch)
            except Exception as e:
                if not isinstance(e, TwinClientError):
                    self.logger.error(f"Unexpected twin client error: {e}", exc_info=True)
                if attempt >= attempts:
                    self.logger.error(
                        f"Failed to report {self.capability} for {self.device_id} "
                        f"after {attempts} attempt(s): {e}"
                    )
                    raise ReportError(self.capability, e) from e
                self.logger.warning(
                    f"Report attempt {attempt}/{attempts} failed: {e}, retrying..."
                )
                await asyncio.sleep(self.retry_delay)
            else:
                self.logger.info(
                    f"Twin state reported for {self.device_id} (version {version})"
                )
                self.logger.debug(json.dumps(patch, indent=2))
                return
