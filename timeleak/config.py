from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Local-day math (calendar windows, 23:59 target) uses this zone
    TIMEZONE: str = "UTC"

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"
    KEY_PREFIX: str = "timeleak"

    # Device usage export (interval stats + events)
    USAGE_EXPORT_PATH: str = "usage_export.json"

    # Upload sink settings
    UPLOAD_BASE_URL: str = "http://localhost:8080"
    UPLOAD_AUTH_TOKEN: str | None = None
    UPLOAD_TIMEOUT_SECONDS: float = 30.0
    CONNECTIVITY_CHECK_URL: str | None = None

    # =================================================================
    # SYNC SCHEDULE SETTINGS
    # =================================================================
    SYNC_TARGET_HOUR: int = 23
    SYNC_TARGET_MINUTE: int = 59
    SYNC_BACKOFF_INITIAL_MINUTES: int = 15
    SYNC_BACKOFF_MAX_HOURS: int = 5
    SYNC_MAX_RETRY_ATTEMPTS: int = 5
    SYNC_MIN_SCREEN_TIME_MS: int = 60_000  # 1 minute noise floor
    SYNC_STALE_AFTER_HOURS: int = 26
    CATCH_UP_SYNC_AFTER_HOURS: int = 18
    PERMISSION_POLL_INTERVAL_MS: int = 500

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def tzinfo(self) -> ZoneInfo:
        """Zone used for local midnight and the daily sync target."""
        return ZoneInfo(self.TIMEZONE)

    def sync_backoff_policy(self):
        """Backoff applied by the work scheduler when a sync asks for a retry."""
        from timeleak.jobs.work_scheduler import BackoffPolicy

        return BackoffPolicy(
            initial_delay_ms=self.SYNC_BACKOFF_INITIAL_MINUTES * 60 * 1000,
            max_delay_ms=self.SYNC_BACKOFF_MAX_HOURS * 60 * 60 * 1000,
            max_attempts=self.SYNC_MAX_RETRY_ATTEMPTS,
        )

    def get_redis_config(self) -> dict:
        """
        Get Redis pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "max_connections": 10,
            "socket_connect_timeout": 10,
            "socket_timeout": 10,
        }

        if self.environment == "development":
            config.update({"max_connections": 4, "socket_connect_timeout": 5})

        return config


settings = Settings()
