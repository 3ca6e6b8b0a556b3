"""Exception hierarchy for the firmware update service."""

from typing import Optional

INVALID_URI_MESSAGE = "Invalid URL format. Must use secure transport."


class FwUpdaterError(Exception):
    """Base class for all service errors."""


class InvalidPackageUriError(FwUpdaterError, ValueError):
    """Package URI failed the secure transport check."""

    code = 400

    def __init__(self, uri: Optional[str] = None):
        self.uri = uri
        super().__init__(INVALID_URI_MESSAGE)


class PhaseError(FwUpdaterError):
    """Failure of a phase's actual work, carried into the twin report."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class DownloadError(PhaseError):
    """Fetching the firmware image failed."""


class ApplyError(PhaseError):
    """Applying the firmware image failed."""


class TwinClientError(FwUpdaterError):
    """Reading or writing the shared twin document failed."""


class ReportError(FwUpdaterError):
    """A status report could not be written to the twin."""

    def __init__(self, capability: str, cause: Exception):
        self.capability = capability
        self.cause = cause
        super().__init__(f"Failed to report {capability}: {cause}")


class UpdateInProgressError(FwUpdaterError):
    """Another update run holds the device lease."""

    code = 409

    def __init__(self, device_id: str, holder: str):
        self.device_id = device_id
        self.holder = holder
        super().__init__(f"Update already in progress on {device_id} (run {holder})")
