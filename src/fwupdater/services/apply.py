"""Apply capability: install a downloaded firmware image on disk."""

import logging
import shutil
from datetime import datetime
from pathlib import Path

import aiofiles

from fwupdater.errors import ApplyError
from fwupdater.utils.verification import md5_of_bytes, verify_md5_or_raise

MISSING_IMAGE_MESSAGE = "Apply image failed because of missing image data"


class ApplyService:
    """Writes the image atomically over the current firmware file."""

    def __init__(
        self,
        firmware_dir: Path = Path("./firmware"),
        backup_dir: Path = Path("./backups"),
        image_name: str = "firmware.bin",
    ):
        """Initialize apply service.

        Args:
            firmware_dir: Directory holding the active image
            backup_dir: Directory receiving the replaced image
            image_name: File name of the active image
        """
        self.logger = logging.getLogger("fwupdater.apply")
        self.firmware_dir = Path(firmware_dir)
        self.backup_dir = Path(backup_dir)
        self.image_name = image_name

    @property
    def image_path(self) -> Path:
        return self.firmware_dir / self.image_name

    @property
    def checksum_path(self) -> Path:
        return self.firmware_dir / f"{self.image_name}.md5"

    async def apply(self, image: bytes) -> None:
        """Install image as the active firmware.

        Raises:
            ApplyError: 400 if image is empty, 500 if writing or verification fails
        """
        if not image:
            raise ApplyError(400, MISSING_IMAGE_MESSAGE)

        target = self.image_path
        tmp_path = target.parent / f"{target.name}.tmp"
        expected_md5 = md5_of_bytes(image)
        self.logger.info(f"Applying image ({len(image)} bytes, md5={expected_md5})")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.exists():
                self._backup_file(target)

            # Write to a temporary file first, then rename over the target
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(image)
            verify_md5_or_raise(tmp_path, expected_md5)
            tmp_path.replace(target)

            async with aiofiles.open(self.checksum_path, "w", encoding="utf-8") as f:
                await f.write(f"{expected_md5}  {self.image_name}\n")

        except ValueError as e:
            self._discard(tmp_path)
            raise ApplyError(500, str(e)) from e
        except OSError as e:
            self._discard(tmp_path)
            raise ApplyError(500, f"Failed to write image: {e}") from e

        self.logger.info(f"Image applied to {target}")

    def _discard(self, tmp_path: Path) -> None:
        if tmp_path.exists():
            tmp_path.unlink()

    def _backup_file(self, file_path: Path) -> Path:
        """Copy the current image aside before it is replaced."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.backup_dir / f"{file_path.name}.{timestamp}.bak"

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(file_path, backup_path)

        self.logger.info(f"Backed up {file_path.name} to {backup_path}")
        return backup_path
