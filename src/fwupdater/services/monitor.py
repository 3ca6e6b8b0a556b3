"""Remote monitor polling a device twin for pattern status."""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from fwupdater.errors import TwinClientError
from fwupdater.models.status import StatusRecord
from fwupdater.services.reporter import DEFAULT_NAMESPACE, FIRMWARE_UPDATE
from fwupdater.services.twin import TwinClient, get_path

RecordCallback = Callable[[Any], Any]
ErrorCallback = Callable[[Exception], Any]


async def _call(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class MonitorHandle:
    """Owns a running poll task; stop() cancels it and waits for it to end."""

    def __init__(self, task: asyncio.Task):
        self._task = task
        self.logger = logging.getLogger("fwupdater.monitor")

    @property
    def running(self) -> bool:
        return not self._task.done()

    async def stop(self) -> None:
        if self._task.done():
            if not self._task.cancelled() and self._task.exception() is not None:
                self.logger.error(
                    f"Monitor stopped by callback error: {self._task.exception()}",
                    exc_info=self._task.exception(),
                )
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class RemoteMonitor:
    """Reads <namespace>.<capability> from a device's reported properties.

    Nothing is written: the monitor only sees whatever record is committed
    when each poll runs, so a phase shorter than the interval may be missed.
    """

    def __init__(
        self,
        twin_client: TwinClient,
        device_id: str,
        namespace: str = DEFAULT_NAMESPACE,
        capability: str = FIRMWARE_UPDATE,
        parser: Callable[[dict], Any] = StatusRecord.from_twin_value,
    ):
        self.logger = logging.getLogger("fwupdater.monitor")
        self.twin_client = twin_client
        self.device_id = device_id
        self.namespace = namespace
        self.capability = capability
        self.parser = parser

    def extract(self, twin: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Return the capability subtree of twin, or None if not reported."""
        value = get_path(twin, "properties", "reported", self.namespace, self.capability)
        return value if isinstance(value, dict) else None

    async def poll_once(self) -> Optional[Any]:
        """Fetch the twin once and parse the capability subtree.

        Returns:
            Parsed record, or None if the capability has not reported yet

        Raises:
            TwinClientError: If the twin could not be fetched
            ValueError: If the subtree is malformed
        """
        twin = await self.twin_client.get_twin(self.device_id)
        value = self.extract(twin)
        if value is None:
            return None
        return self.parser(value)

    async def poll_forever(
        self,
        interval: float,
        on_record: RecordCallback,
        on_error: Optional[ErrorCallback] = None,
        include_missing: bool = False,
    ) -> None:
        """Poll every interval seconds until cancelled.

        Args:
            interval: Seconds between polls
            on_record: Called with each parsed record (sync or async)
            on_error: Called with fetch/parse errors; polling continues
            include_missing: Pass None to on_record while nothing is reported
        """
        self.logger.info(
            f"Monitoring {self.namespace}.{self.capability} on {self.device_id} "
            f"every {interval}s"
        )
        while True:
            try:
                record = await self.poll_once()
            except (TwinClientError, ValueError) as e:
                self.logger.warning(f"Could not query twin of {self.device_id}: {e}")
                await _call(on_error, e)
            else:
                if record is None:
                    self.logger.debug(
                        f"Waiting for {self.device_id} to report {self.capability}"
                    )
                if record is not None or include_missing:
                    await _call(on_record, record)

            await asyncio.sleep(interval)

    def start(
        self,
        interval: float,
        on_record: RecordCallback,
        on_error: Optional[ErrorCallback] = None,
        include_missing: bool = False,
    ) -> MonitorHandle:
        """Run poll_forever as a task; the caller must stop() the handle."""
        task = asyncio.create_task(
            self.poll_forever(interval, on_record, on_error, include_missing),
            name=f"monitor-{self.device_id}-{self.capability}",
        )
        return MonitorHandle(task)

    @asynccontextmanager
    async def watch(
        self,
        interval: float,
        on_record: RecordCallback,
        on_error: Optional[ErrorCallback] = None,
        include_missing: bool = False,
    ) -> AsyncIterator[MonitorHandle]:
        """Scoped monitor, stopped when the block exits."""
        handle = self.start(interval, on_record, on_error, include_missing)
        try:
            yield handle
        finally:
            await handle.stop()
