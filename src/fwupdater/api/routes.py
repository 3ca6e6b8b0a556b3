"""API route handlers for direct methods and device twins."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request

from fwupdater.api.models import ApiResponse, FirmwareUpdatePayload, MethodResult
from fwupdater.errors import TwinClientError
from fwupdater.services.context import UpdaterContext
from fwupdater.services.reporter import FIRMWARE_UPDATE, REBOOT

router = APIRouter(prefix="/api/v1.0")


def get_context(request: Request) -> UpdaterContext:
    """Session created by the application lifespan."""
    return request.app.state.context


def _method_response(result) -> ApiResponse:
    data = MethodResult(status=result.status, payload=result.payload)
    msg = "success" if result.status == 200 else result.payload
    return ApiResponse(code=result.status, msg=msg, data=data)


@router.post(f"/devices/{{device_id}}/methods/{FIRMWARE_UPDATE}", response_model=ApiResponse)
async def post_firmware_update(
    device_id: str,
    payload: Optional[FirmwareUpdatePayload] = Body(None),
    context: UpdaterContext = Depends(get_context),
):
    """POST /api/v1.0/devices/{device_id}/methods/firmwareUpdate.

    Response format (accepted):
        {
            "code": 200,
            "msg": "success",
            "data": {"status": 200, "payload": "Firmware update started."}
        }

    Response format (insecure URI):
        {
            "code": 400,
            "msg": "Invalid URL format. Must use secure transport.",
            "data": {"status": 400, "payload": "Invalid URL format. Must use secure transport."}
        }
    """
    command = context.firmware_update_command(device_id)
    return _method_response(command.invoke(payload.model_dump() if payload is not None else None))


@router.post(f"/devices/{{device_id}}/methods/{REBOOT}", response_model=ApiResponse)
async def post_reboot(
    device_id: str,
    payload: Optional[dict[str, Any]] = Body(None),
    context: UpdaterContext = Depends(get_context),
):
    """POST /api/v1.0/devices/{device_id}/methods/reboot."""
    command = context.reboot_command(device_id)
    return _method_response(command.invoke(payload))


@router.get("/devices/{device_id}/twin", response_model=ApiResponse)
async def get_twin(device_id: str, context: UpdaterContext = Depends(get_context)):
    """GET /api/v1.0/devices/{device_id}/twin - Full twin document."""
    try:
        twin = await context.twin_client.get_twin(device_id)
    except TwinClientError as e:
        return ApiResponse(code=500, msg=f"Could not query twin: {e}")
    return ApiResponse(code=200, msg="success", data=twin)


@router.patch("/devices/{device_id}/twin/reported", response_model=ApiResponse)
async def patch_reported(
    device_id: str,
    patch: dict[str, Any] = Body(...),
    context: UpdaterContext = Depends(get_context),
):
    """PATCH /api/v1.0/devices/{device_id}/twin/reported - Merge patch.

    Keys set to null are removed. Returns the new reported version.
    """
    try:
        version = await context.twin_client.update_reported(device_id, patch)
    except TwinClientError as e:
        return ApiResponse(code=500, msg=f"Could not update twin: {e}")
    return ApiResponse(code=200, msg="success", data={"$version": version})


@router.get(f"/devices/{{device_id}}/{FIRMWARE_UPDATE}", response_model=ApiResponse)
async def get_firmware_update_status(
    device_id: str, context: UpdaterContext = Depends(get_context)
):
    """GET /api/v1.0/devices/{device_id}/firmwareUpdate - Current status record.

    Response format (failed run):
        {
            "code": 200,
            "msg": "success",
            "data": {
                "phase": "downloadFailed",
                "timestamp": "2026-10-19T12:00:00Z",
                "error": {"code": 504, "message": "timeout"}
            }
        }
    """
    monitor = context.monitor_for(device_id)
    try:
        record = await monitor.poll_once()
    except (TwinClientError, ValueError) as e:
        return ApiResponse(code=500, msg=f"Could not read status: {e}")

    if record is None:
        return ApiResponse(code=404, msg=f"{FIRMWARE_UPDATE} not reported yet")
    return ApiResponse(code=200, msg="success", data=record.to_twin_value())
