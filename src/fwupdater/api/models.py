"""Pydantic models for HTTP API requests and responses."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class FirmwareUpdatePayload(BaseModel):
    """POST /api/v1.0/devices/{device_id}/methods/firmwareUpdate payload.

    The URI is checked by the command itself so an insecure, missing or
    non-string value (or no body at all) yields code 400 rather than a
    schema error.

    Example:
        {
            "fwPackageUri": "https://updates.example.com/fw-2.1.0.bin"
        }
    """

    model_config = ConfigDict(extra="allow")

    fwPackageUri: Optional[Any] = Field(
        None,
        description="HTTPS URL of the firmware package",
        examples=["https://updates.example.com/fw-2.1.0.bin"],
    )


class ApiResponse(BaseModel):
    """Envelope used by every endpoint.

    HTTP status code is always 200, real status in 'code' field.
    """

    code: int = Field(..., description="Application-level status code (200/400/404/409/500)")
    msg: str = Field(..., description="Status message or error description")
    data: Optional[Any] = Field(None, description="Optional response data")


class MethodResult(BaseModel):
    """data of a direct method response."""

    status: int = Field(..., description="Method result code")
    payload: str = Field(..., description="Method result message")
