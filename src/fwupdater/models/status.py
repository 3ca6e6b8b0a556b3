"""Phase enum and status record for the firmware update pattern."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PhaseEnum(str, Enum):
    """Firmware update phases.

    State transitions:
    waiting → downloading → downloadComplete → applying → applyComplete
                   ↓                              ↓
             downloadFailed                  applyFailed
    """

    WAITING = "waiting"
    DOWNLOADING = "downloading"
    DOWNLOAD_COMPLETE = "downloadComplete"
    DOWNLOAD_FAILED = "downloadFailed"
    APPLYING = "applying"
    APPLY_COMPLETE = "applyComplete"
    APPLY_FAILED = "applyFailed"

    @property
    def is_failure(self) -> bool:
        return self in (PhaseEnum.DOWNLOAD_FAILED, PhaseEnum.APPLY_FAILED)

    @property
    def is_terminal(self) -> bool:
        return self in (
            PhaseEnum.DOWNLOAD_FAILED,
            PhaseEnum.APPLY_COMPLETE,
            PhaseEnum.APPLY_FAILED,
        )


def utcnow() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class ErrorInfo(BaseModel):
    """Error payload attached to the failed phases."""

    model_config = ConfigDict(frozen=True)

    code: int = Field(..., description="Numeric error code (HTTP-like)")
    message: str = Field(..., description="Human-readable failure description")


class StatusRecord(BaseModel):
    """Status written to iothubDM.firmwareUpdate on every transition.

    Example (wire form):
        {
            "phase": "downloadFailed",
            "timestamp": "2026-10-19T12:00:00Z",
            "error": {"code": 504, "message": "timeout"}
        }
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    phase: PhaseEnum = Field(..., description="Current update phase")
    timestamp: datetime = Field(
        default_factory=utcnow, description="Instant of the transition (UTC)"
    )
    error: Optional[ErrorInfo] = Field(
        None, description="Failure details, failed phases only"
    )
    package_uri: Optional[str] = Field(
        None, alias="packageUri", description="Package URI, waiting phase only"
    )

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_phase_fields(self) -> "StatusRecord":
        """Enforce which fields each phase may carry."""
        if self.phase.is_failure and self.error is None:
            raise ValueError(f"Phase {self.phase.value} requires an error")
        if not self.phase.is_failure and self.error is not None:
            raise ValueError(f"Phase {self.phase.value} must not carry an error")
        if self.phase != PhaseEnum.WAITING and self.package_uri is not None:
            raise ValueError("packageUri is only reported in the waiting phase")
        return self

    @classmethod
    def waiting(cls, package_uri: str) -> "StatusRecord":
        return cls(phase=PhaseEnum.WAITING, package_uri=package_uri)

    @classmethod
    def entered(cls, phase: PhaseEnum) -> "StatusRecord":
        return cls(phase=phase)

    @classmethod
    def failed(cls, phase: PhaseEnum, code: int, message: str) -> "StatusRecord":
        return cls(phase=phase, error=ErrorInfo(code=code, message=message))

    def to_twin_value(self) -> dict[str, Any]:
        """Serialize to the map stored under the capability key."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_twin_value(cls, value: dict[str, Any]) -> "StatusRecord":
        """Parse the map stored under the capability key.

        Keys belonging to other writers (timestamps of older samples,
        bookkeeping) are ignored.
        """
        known = {"phase", "timestamp", "error", "packageUri"}
        return cls(**{k: v for k, v in value.items() if k in known and v is not None})
