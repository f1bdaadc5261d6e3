"""
Configuration
-------------
Runtime settings read from environment variables, with a .env file in the
working directory as fallback.
"""

from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings. Each field is read from the upper-case variable of the same name."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    session_timeout_minutes: float = 15
    session_sweep_interval_minutes: float = 5
    max_dataset_rows: int = 100_000
    max_upload_bytes: int = 50 * 1024 * 1024
    preview_rows: int = 15
    log_level: str = "INFO"
    port: int = 8000

    @property
    def session_timeout(self) -> timedelta:
        return timedelta(minutes=self.session_timeout_minutes)

    @property
    def session_sweep_interval(self) -> timedelta:
        return timedelta(minutes=self.session_sweep_interval_minutes)


settings = Settings()
