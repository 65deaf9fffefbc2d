# sitelens/core/config.py
# -----------------------------------------------------------------------------
# Global settings (pydantic-settings v2)
# - reads the .env file and OS environment into one Settings object
# - type safety and defaults live next to each field
# -----------------------------------------------------------------------------
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # basics
    APP_NAME: str = "SiteLens"
    ENV: str = "dev"
    DATABASE_URL: str = "sqlite+aiosqlite:///./sitelens.db"

    # external API keys
    GOOGLE_MAPS_SERVER_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    CENSUS_API_KEY: str | None = None

    # upstream endpoints
    GOOGLE_MAPS_BASE_URL: str = "https://maps.googleapis.com/maps/api"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4"
    CENSUS_API_URL: str = "https://api.census.gov/data/2019/acs/acs5"

    # per-call timeouts (seconds)
    HTTP_CONNECT_TIMEOUT: float = 6.0
    HTTP_READ_TIMEOUT: float = 10.0
    LLM_READ_TIMEOUT: float = 60.0

    # pipeline knobs
    NEARBY_RADIUS_M: int = 1000
    ALTERNATIVE_RADIUS_M: int = 2000
    COMPETITOR_LIMIT: int = 10
    DETAILS_CONCURRENCY: int = 5
    ANALYSIS_CACHE_SIZE: int = 50

    # logging
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore"  # ignore unrelated keys in .env
    )


settings = Settings()
