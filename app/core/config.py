from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DB_URL: str
    REDIS_URL: str

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_COOKIE_NAME: str = "access_token"

    OPENAI_API_KEY: str | None = None
    COMPANION_MODEL: str = "gpt-4o-mini"
    COMPANION_TEMPERATURE: float = 0.8
    COMPANION_MAX_TOKENS: int = 512
    MAX_HISTORY_WINDOW: int = 20
    HISTORY_TTL: int = 60 * 60 * 24 * 7
    LOG_PROMPTS: bool = False

    # Retention sweep
    MEMORY_SWEEP_ENABLED: bool = True
    MEMORY_SWEEP_INTERVAL_HOURS: int = 24
    CRON_SECRET: str | None = None

    # Quota day boundary. Only "UTC" is supported.
    QUOTA_TIMEZONE: str = "UTC"
    STORE_RETRY_ATTEMPTS: int = 3

    # Counter store client
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: float = 2.0
    REDIS_RETRY_ATTEMPTS: int = 3

    # Short-window limits on top of the daily quota
    RATE_LIMIT_ENABLED: bool = True

    CORS_ORIGINS: list[str] = Field(default_factory=list)
    AUTO_CREATE_TABLES: bool = False

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[1].parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
