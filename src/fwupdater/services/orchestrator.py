"""Firmware update state machine reported through the device twin."""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

from fwupdater.errors import ApplyError, DownloadError, PhaseError, ReportError
from fwupdater.models.request import UpdateRequest
from fwupdater.models.status import ErrorInfo, PhaseEnum, StatusRecord
from fwupdater.services.lease import DeviceLeaseRegistry, TwinHandle
from fwupdater.services.reporter import StatusReporter


class Fetcher(Protocol):
    async def fetch(self, uri: str) -> bytes: ...


class Applier(Protocol):
    async def apply(self, image: bytes) -> None: ...


@dataclass
class UpdateOutcome:
    """Result of one orchestration run."""

    device_id: str
    package_uri: str
    final_phase: Optional[PhaseEnum] = None
    error: Optional[ErrorInfo] = None
    reports: list[StatusRecord] = field(default_factory=list)
    report_errors: list[ReportError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.final_phase == PhaseEnum.APPLY_COMPLETE

    @property
    def phases(self) -> list[PhaseEnum]:
        return [record.phase for record in self.reports]


@dataclass(frozen=True)
class _Phase:
    entered: PhaseEnum
    completed: PhaseEnum
    failed: PhaseEnum
    error_type: type


DOWNLOAD = _Phase(
    PhaseEnum.DOWNLOADING, PhaseEnum.DOWNLOAD_COMPLETE, PhaseEnum.DOWNLOAD_FAILED, DownloadError
)
APPLY = _Phase(
    PhaseEnum.APPLYING, PhaseEnum.APPLY_COMPLETE, PhaseEnum.APPLY_FAILED, ApplyError
)


class UpdateOrchestrator:
    """Runs waiting → download → apply for one device.

    Each phase is reported before its work starts and again once the work
    has finished or failed. Failures end the run; there is no retry and no
    rollback. Report failures are collected in the outcome and never stop
    the run.
    """

    def __init__(
        self,
        reporter: StatusReporter,
        fetcher: Fetcher,
        applier: Applier,
        leases: Optional[DeviceLeaseRegistry] = None,
    ):
        """Initialize orchestrator.

        Args:
            reporter: Reporter bound to the device's firmwareUpdate capability
            fetcher: Download capability
            applier: Apply capability
            leases: Lease registry; when given, runs without a handle acquire one
        """
        self.logger = logging.getLogger("fwupdater.orchestrator")
        self.reporter = reporter
        self.fetcher = fetcher
        self.applier = applier
        self.leases = leases

    @property
    def device_id(self) -> str:
        return self.reporter.device_id

    async def run(
        self, request: UpdateRequest, handle: Optional[TwinHandle] = None
    ) -> UpdateOutcome:
        """Execute one firmware update run.

        Args:
            request: Validated update request
            handle: Lease already acquired by the caller, released on return

        Returns:
            UpdateOutcome describing the final phase and every report attempted

        Raises:
            UpdateInProgressError: If no handle was given and the lease is held
        """
        if handle is None and self.leases is not None:
            handle = self.leases.acquire(self.device_id)

        outcome = UpdateOutcome(device_id=self.device_id, package_uri=request.package_uri)
        self.logger.info(
            f"Starting firmware update on {self.device_id}: {request.package_uri}"
        )

        try:
            await self._report(outcome, StatusRecord.waiting(request.package_uri))
            image = await self._run_phase(
                outcome, DOWNLOAD, lambda: self.fetcher.fetch(request.package_uri)
            )
            await self._run_phase(outcome, APPLY, lambda: self.applier.apply(image))
        except PhaseError as e:
            self.logger.error(
                f"Firmware update on {self.device_id} ended in "
                f"{outcome.final_phase.value}: {e}"
            )
        else:
            self.logger.info(f"Completed firmware update on {self.device_id}")
        finally:
            if handle is not None and self.leases is not None:
                self.leases.release(handle)

        return outcome

    async def _run_phase(
        self, outcome: UpdateOutcome, phase: _Phase, work: Callable[[], Awaitable[Any]]
    ) -> Any:
        await self._report(outcome, StatusRecord.entered(phase.entered))

        try:
            result = await work()
        except PhaseError as e:
            error = e if isinstance(e, phase.error_type) else phase.error_type(e.code, e.message)
        except Exception as e:
            self.logger.error(f"Unexpected error in {phase.entered.value}: {e}", exc_info=True)
            error = phase.error_type(500, str(e) or type(e).__name__)
        else:
            outcome.final_phase = phase.completed
            await self._report(outcome, StatusRecord.entered(phase.completed))
            return result

        outcome.final_phase = phase.failed
        outcome.error = ErrorInfo(code=error.code, message=error.message)
        await self._report(
            outcome, StatusRecord.failed(phase.failed, error.code, error.message)
        )
        raise error

    async def _report(self, outcome: UpdateOutcome, record: StatusRecord) -> None:
        outcome.reports.append(record)
        try:
            await self.reporter.report(record)
        except ReportError as e:
            self.logger.warning(
                f"Status {record.phase.value} not reported, continuing: {e}"
            )
            outcome.report_errors.append(e)
