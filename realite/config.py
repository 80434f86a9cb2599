from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database / Redis
    DATABASE_URL: str = "postgresql://localhost:5432/realite"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Auth (session handling lives outside this service, we only verify tokens)
    JWT_SECRET: str | None = None
    JWT_AUDIENCE: str = "authenticated"

    # Public app URL used in calendar metadata links
    PUBLIC_APP_URL: str = "https://realite.app"

    # Google Calendar API
    GOOGLE_CALENDAR_API_BASE_URL: str = "https://www.googleapis.com/calendar/v3"
    GOOGLE_CALENDAR_TIMEOUT_SECONDS: float = 30.0

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # SUGGESTION MATCHING
    # =================================================================
    SUGGESTION_MIN_SCORE: float = 1.25
    SUGGESTION_AUTO_INSERT_MIN_SCORE: float = 1.5
    SUGGESTION_EXPLORATION_BONUS: float = 0.35
    SUGGESTION_EVERYONE_BONUS: float = 0.2
    SUGGESTION_EVERYONE_TAG: str = "#alle"

    # =================================================================
    # SMART MEETINGS
    # =================================================================
    SMART_MEETING_DEFAULT_RESPONSE_WINDOW_HOURS: int = 24
    SMART_MEETING_DEFAULT_SLOT_INTERVAL_MINUTES: int = 30
    SMART_MEETING_DEFAULT_MAX_ATTEMPTS: int = 3
    SMART_MEETING_MAX_CANDIDATE_SLOTS: int = 600
    SMART_MEETING_LOCK_TTL_SECONDS: int = 30
    SMART_MEETING_TICK_SECONDS: int = 60

    # =================================================================
    # BACKGROUND SYNC
    # =================================================================
    SYNC_COOLDOWN_SECONDS: float = 90.0

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config


settings = Settings()
