from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration, read from `BUCKETFS_*` environment variables
    and an optional `.env` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUCKETFS_", env_file=".env", extra="ignore"
    )

    # --- Object store ---
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_region: str = "us-east-1"
    s3_provider: Literal[
        "amazonaws", "wasabisys", "digitaloceanspaces", "custom"
    ] = "amazonaws"
    s3_endpoint: str | None = None
    bucket: str | None = None

    # --- Folder emulation ---
    marker_suffix: str = ".placeholder"
    upload_wave_width: int = 3

    # --- Logging ---
    log_level: str = "INFO"
    log_capacity: int = 500

    # --- Session gate ---
    admin_email: str | None = None
    admin_password: str | None = None

    @model_validator(mode="after")
    def check_values(self):
        if self.s3_provider == "custom" and not self.s3_endpoint:
            raise ValueError("s3_endpoint is required when s3_provider is 'custom'")
        if not self.marker_suffix or "/" in self.marker_suffix:
            raise ValueError("marker_suffix must be a non-empty name without '/'")
        if self.upload_wave_width < 1:
            raise ValueError("upload_wave_width must be at least 1")
        if self.log_capacity < 1:
            raise ValueError("log_capacity must be at least 1")
        return self

    def s3_enabled(self) -> bool:
        return all([self.s3_access_key, self.s3_secret_key, self.bucket])


@lru_cache()
def get_settings() -> Settings:
    return Settings()
