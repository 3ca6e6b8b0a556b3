"""Command line entry point: run the service or drive a remote device."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

import httpx

from fwupdater.config import Settings
from fwupdater.models.status import PhaseEnum, StatusRecord
from fwupdater.services.monitor import RemoteMonitor
from fwupdater.services.reporter import FIRMWARE_UPDATE, REBOOT
from fwupdater.services.twin import HttpTwinClient
from fwupdater.utils.logging import setup_logger

DEFAULT_PACKAGE_URI = "https://secureurl"

logger = logging.getLogger("fwupdater.cli")


async def invoke_method(
    service_url: str, device_id: str, method: str, payload: Optional[dict], timeout: float
) -> dict:
    """POST a direct method to the service and return the response envelope."""
    url = f"{service_url.rstrip('/')}/api/v1.0/devices/{device_id}/methods/{method}"
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(url, json=payload)
        response.raise_for_status()
        return response.json()


async def trigger_update(args: argparse.Namespace) -> int:
    """Start firmwareUpdate on a device and print its status until terminal."""
    try:
        body = await invoke_method(
            args.service_url, args.device_id, FIRMWARE_UPDATE,
            {"fwPackageUri": args.uri}, args.timeout,
        )
    except httpx.HTTPError as e:
        print(f"Could not start the firmware update on the device: {e}", file=sys.stderr)
        return 1

    result = body.get("data") or {}
    print(f"Method ({FIRMWARE_UPDATE}) result: {result.get('payload', body.get('msg'))}")
    if body.get("code") != 200:
        return 1

    done = asyncio.Event()
    final: list[StatusRecord] = []

    def show(record: StatusRecord) -> None:
        print(json.dumps(record.to_twin_value(), indent=2) + "\n")
        if record.phase.is_terminal:
            final.append(record)
            done.set()

    def show_error(error: Exception) -> None:
        print(f"Error showing twin: {error}", file=sys.stderr)

    monitor = RemoteMonitor(HttpTwinClient(args.service_url), args.device_id, namespace=args.namespace)
    async with monitor.watch(args.interval, show, on_error=show_error):
        try:
            await asyncio.wait_for(done.wait(), timeout=args.wait)
        except asyncio.TimeoutError:
            print("Timed out waiting for the update to finish", file=sys.stderr)
            return 1

    return 0 if final[0].phase == PhaseEnum.APPLY_COMPLETE else 1


async def trigger_reboot(args: argparse.Namespace) -> int:
    """Invoke reboot on a device and print the reported lastReboot time."""
    try:
        body = await invoke_method(args.service_url, args.device_id, REBOOT, None, args.timeout)
    except httpx.HTTPError as e:
        print(f"Direct method error: {e}", file=sys.stderr)
        return 1
    print("Successfully invoked the device to reboot.")

    done = asyncio.Event()

    def show(value: Optional[dict]) -> None:
        if value is None:
            print("Waiting for device to report last reboot time.")
            return
        print(f"Last reboot time: {json.dumps(value.get('lastReboot'))}")
        done.set()

    monitor = RemoteMonitor(
        HttpTwinClient(args.service_url), args.device_id, namespace=args.namespace,
        capability=REBOOT, parser=dict,
    )
    async with monitor.watch(args.interval, show, include_missing=True):
        try:
            await asyncio.wait_for(done.wait(), timeout=args.wait)
        except asyncio.TimeoutError:
            return 1
    return 0 if body.get("code") == 200 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fwupdater",
        description="Firmware update orchestration through device twins",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the HTTP service")

    for name, help_text in (
        ("trigger", "Start a firmware update on a device and monitor it"),
        ("reboot", "Reboot a device and show its last reboot time"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("service_url", help="Base URL of the fwupdater service")
        sub.add_argument("device_id", help="Target device identifier")
        sub.add_argument("--interval", type=float, default=None, help="Poll interval (seconds)")
        sub.add_argument("--wait", type=float, default=300.0, help="Give up after (seconds)")
        sub.add_argument("--timeout", type=float, default=30.0, help="Method call timeout")
        if name == "trigger":
            sub.add_argument("--uri", default=DEFAULT_PACKAGE_URI, help="Firmware package URI")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point; missing arguments print usage to stderr and exit 2."""
    args = build_parser().parse_args(argv)
    settings = Settings()

    if args.command == "serve":
        from fwupdater.main import main as serve

        serve(settings)
        return 0

    setup_logger(settings.log_level_value)
    args.namespace = settings.namespace
    if args.interval is None:
        args.interval = settings.monitor_interval

    runner = trigger_update if args.command == "trigger" else trigger_reboot
    return asyncio.run(runner(args))


if __name__ == "__main__":
    sys.exit(main())
