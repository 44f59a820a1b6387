from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://cadence:cadence@db:5432/cadence"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Every date computation runs in this zone; it is never read from the host.
    APP_TIMEZONE: str = "Asia/Seoul"

    # Maximum number of quest occurrences produced per goal.
    QUEST_LIMIT: int = 100

    # "count_each" or "one_per_date" (see cadence/services/achievement.py)
    DUPLICATE_EVENT_POLICY: str = "count_each"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.APP_TIMEZONE)


settings = Settings()
