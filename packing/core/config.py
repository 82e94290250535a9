from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_ENV: str = "dev"

    # Database URL (loaded from .env)
    APP_DATABASE_URL: str = "sqlite:///./packing.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None  # e.g. "packing.log"; console only when unset

    # Persist drafts after every edit request instead of waiting for /flush
    DRAFT_AUTOSAVE: bool = True

    # React dev server by default
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # point to .env file
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
