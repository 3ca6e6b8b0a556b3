"""Unit tests for RemoteMonitor and MonitorHandle."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from fwupdater.errors import TwinClientError
from fwupdater.models.status import PhaseEnum, StatusRecord
from fwupdater.services.monitor import RemoteMonitor


@pytest.mark.unit
class TestRemoteMonitor:
    """Test polling, extraction and cancellation."""

    @pytest.fixture
    def monitor(self, twin_client):
        return RemoteMonitor(twin_client, "dev-1")

    @pytest.mark.asyncio
    async def test_poll_once_nothing_reported(self, monitor):
        assert await monitor.poll_once() is None

    @pytest.mark.asyncio
    async def test_poll_once_returns_written_record(self, monitor, reporter):
        record = StatusRecord.failed(PhaseEnum.DOWNLOAD_FAILED, 504, "timeout")
        await reporter.report(record)

        assert await monitor.poll_once() == record

    @pytest.mark.asyncio
    async def test_repoll_without_write_is_identical(self, monitor, reporter):
        await reporter.report(StatusRecord.entered(PhaseEnum.APPLYING))

        first = await monitor.poll_once()
        second = await monitor.poll_once()

        assert first == second

    @pytest.mark.asyncio
    async def test_other_capability_only_is_missing(self, monitor, twin_client):
        await twin_client.update_reported("dev-1", {"iothubDM": {"reboot": {"lastReboot": "t"}}})

        assert await monitor.poll_once() is None

    @pytest.mark.asyncio
    async def test_custom_parser_for_raw_capability(self, twin_client):
        await twin_client.update_reported("dev-1", {"iothubDM": {"reboot": {"lastReboot": "t"}}})
        monitor = RemoteMonitor(twin_client, "dev-1", capability="reboot", parser=dict)

        assert await monitor.poll_once() == {"lastReboot": "t"}

    @pytest.mark.asyncio
    async def test_poll_forever_suppresses_missing(self, monitor):
        seen = []

        async with monitor.watch(0.01, seen.append):
            await asyncio.sleep(0.05)

        assert seen == []

    @pytest.mark.asyncio
    async def test_poll_forever_passes_missing_when_asked(self, monitor):
        seen = []

        async with monitor.watch(0.01, seen.append, include_missing=True):
            await asyncio.sleep(0.05)

        assert seen and all(item is None for item in seen)

    @pytest.mark.asyncio
    async def test_poll_forever_delivers_records(self, monitor, reporter):
        await reporter.report(StatusRecord.entered(PhaseEnum.DOWNLOADING))
        seen = []

        async def on_record(record):
            seen.append(record.phase)

        async with monitor.watch(0.01, on_record):
            await asyncio.sleep(0.03)
            await reporter.report(StatusRecord.entered(PhaseEnum.APPLYING))
            await asyncio.sleep(0.03)

        assert seen[0] == PhaseEnum.DOWNLOADING
        assert seen[-1] == PhaseEnum.APPLYING

    @pytest.mark.asyncio
    async def test_fetch_errors_reported_and_polling_continues(self, twin_client):
        twin_client.get_twin = AsyncMock(
            side_effect=[TwinClientError("down"), {"properties": {"reported": {}}}] * 10
        )
        monitor = RemoteMonitor(twin_client, "dev-1")
        errors = []

        async with monitor.watch(0.01, lambda r: None, on_error=errors.append):
            await asyncio.sleep(0.05)

        assert errors
        assert twin_client.get_twin.await_count >= 2

    @pytest.mark.asyncio
    async def test_malformed_subtree_goes_to_on_error(self, twin_client):
        await twin_client.update_reported("dev-1", {"iothubDM": {"firmwareUpdate": {"phase": "bogus"}}})
        monitor = RemoteMonitor(twin_client, "dev-1")
        errors = []

        async with monitor.watch(0.01, lambda r: None, on_error=errors.append):
            await asyncio.sleep(0.03)

        assert errors and isinstance(errors[0], ValueError)

    @pytest.mark.asyncio
    async def test_watch_stops_task_on_exit(self, monitor):
        async with monitor.watch(0.01, lambda r: None) as handle:
            assert handle.running

        assert not handle.running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, monitor):
        handle = monitor.start(0.01, lambda r: None)

        await handle.stop()
        await handle.stop()

        assert not handle.running

    @pytest.mark.asyncio
    async def test_stop_logs_callback_error(self, monitor, reporter, caplog):
        await reporter.report(StatusRecord.entered(PhaseEnum.APPLYING))

        def explode(record):
            raise RuntimeError("display closed")

        handle = monitor.start(0.01, explode)
        await asyncio.sleep(0.03)
        assert not handle.running

        await handle.stop()

        assert not handle.running
        assert "Monitor stopped by callback error: display closed" in caplog.text
