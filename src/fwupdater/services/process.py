"""Shell command execution for device actions (reboot)."""

import asyncio
import logging


class ProcessManager:
    """Runs device-level shell commands."""

    def __init__(self):
        self.logger = logging.getLogger("fwupdater.process")

    async def run_command(self, command: str) -> str:
        """Run command in a shell and return its stdout.

        Raises:
            RuntimeError: If the command exits non-zero
        """
        self.logger.info(f"Running: {command}")

        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            raise RuntimeError(
                f"Command failed: {command}: "
                f"exit code {process.returncode}, "
                f"stderr: {stderr.decode()}"
            )

        return stdout.decode()
