from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./tripdesk.db"

    # Admin tokens are issued elsewhere; this service only verifies them
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # Backing store for the action rate limiter
    REDIS_URL: str = "redis://localhost:6379/0"
    ACTION_RATE_LIMIT_PER_MINUTE: int = 30

    # Upper bound for one admin list load, including every fan-out query
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    CREATE_TABLES_ON_STARTUP: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
