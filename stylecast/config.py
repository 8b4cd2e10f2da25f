"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the StyleCast service."""
    model_config = SettingsConfigDict(env_prefix="STYLECAST_", extra="ignore")

    weather_source: str = "openweather"  # options: openweather
    openweather_api_key: str | None = None
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    weather_units: str = "metric"
    weather_lang: str = "en"
    request_timeout_seconds: float = 10.0

    forecast_timezone: str = "Asia/Seoul"
    hourly_window: int = 8
    daily_limit: int = 5

    # Seoul City Hall; used when the caller sends no coordinates or city.
    default_latitude: float = 37.5665
    default_longitude: float = 126.9780

    store_redis_url: str | None = None
    store_prefix: str = "stylecast:"
    store_poll_interval_seconds: float = 0.1

    api_key: str | None = None
    log_level: str = "INFO"

    @field_validator("openweather_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
