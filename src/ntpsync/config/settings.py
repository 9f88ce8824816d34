from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ntpsync.protocol.packet import NTP_DEFAULT_PORT


class Settings(BaseSettings):
    """Client settings with environment variable support (NTPSYNC_*)"""

    model_config = SettingsConfigDict(env_prefix="NTPSYNC_", env_file=".env", extra="ignore")

    # Remote time authority
    destination_host: str = "pool.ntp.org"
    destination_port: int = Field(default=NTP_DEFAULT_PORT, ge=1, le=65535)

    # Synchronization
    time_offset: int = 0  # seconds added to every synced instant
    resync_interval_ms: int = Field(default=60000, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_backoff_ms: int = Field(default=1000, ge=0)

    # Local socket
    local_host: str = "0.0.0.0"

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
