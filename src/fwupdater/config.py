"""Service settings with FWUPDATER_* environment overrides."""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration.

    Every field can be overridden by an environment variable named
    FWUPDATER_<FIELD_NAME_UPPERCASE>, e.g. FWUPDATER_PORT=8080.
    """

    model_config = SettingsConfigDict(env_prefix="FWUPDATER_", extra="ignore")

    host: str = Field("0.0.0.0", description="HTTP bind address")
    port: int = Field(12316, gt=0, lt=65536, description="HTTP port")
    log_file: str = Field("./logs/fwupdater.log", description="Rotating log file")
    log_level: str = Field("INFO", description="DEBUG/INFO/WARNING/ERROR")
    firmware_dir: Path = Field(Path("./firmware"), description="Applied image location")
    backup_dir: Path = Field(Path("./backups"), description="Previous image backups")
    download_timeout: float = Field(30.0, gt=0, description="Download timeout (seconds)")
    max_image_size: int = Field(
        64 * 1024 * 1024, gt=0, description="Largest accepted image (bytes)"
    )
    report_retries: int = Field(0, ge=0, description="Extra attempts per twin report")
    report_retry_delay: float = Field(0.5, ge=0, description="Delay between report attempts")
    lease_ttl: float = Field(3600.0, gt=0, description="Device lease expiry (seconds)")
    namespace: str = Field("iothubDM", description="Top-level key of pattern status")
    monitor_interval: float = Field(1.0, gt=0, description="Remote monitor poll interval")
    twin_url: Optional[str] = Field(
        None, description="Remote twin service base URL (None = in-memory twins)"
    )
    reboot_command: Optional[str] = Field(
        None, description="Shell command run by the reboot method (None = log only)"
    )

    @field_validator("log_level")
    @classmethod
    def known_level(cls, v: str) -> str:
        """Reject level names the logging module does not know."""
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"Unknown log level: {v}")
        return v

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)

