from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://watchtime:watchtime@db:5432/watchtime"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    # --- Platform credentials (app access tokens, client-credentials grant) ---
    TWITCH_CLIENT_ID: str = ""
    TWITCH_CLIENT_SECRET: str = ""
    KICK_CLIENT_ID: str = ""
    KICK_CLIENT_SECRET: str = ""

    # --- Polling ---
    PLATFORM_TIMEOUT_SECONDS: float = 10.0
    POLL_WORKERS: int = 4
    BATCH_TIMEOUT_SECONDS: float = 30.0
    RETRY_BACKOFF_SECONDS: float = 2.0

    # Consecutive Unknown verdicts before a creator is flagged for review.
    # At a 5 minute cadence, 12 cycles is one hour without a usable answer.
    UNKNOWN_STREAK_REVIEW_THRESHOLD: int = 12

    # --- Rollup ---
    # Single reference timezone for calendar-day boundaries, all creators.
    ROLLUP_TIMEZONE: str = "UTC"

    # --- Data quality ---
    # creator_daily_stats columns scanned by the offline repair pass.
    QUALITY_REPAIR_FIELDS: str = "hours_watched_week,hours_watched_month"

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return "INFO"
        return v

    @field_validator("ROLLUP_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v!r}") from exc
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def rollup_tz(self) -> ZoneInfo:
        return ZoneInfo(self.ROLLUP_TIMEZONE)

    @property
    def quality_repair_fields(self) -> list[str]:
        return [f.strip() for f in self.QUALITY_REPAIR_FIELDS.split(",") if f.strip()]


settings = Settings()
