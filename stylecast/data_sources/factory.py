"""Factory helpers for choosing a weather provider at startup."""

from __future__ import annotations

from functools import partial

from stylecast import config
from stylecast.data_sources.base import CallableWeatherProvider, WeatherProvider
from stylecast.data_sources.openweather_client import (
    fetch_current_weather,
    fetch_current_weather_by_city,
    fetch_forecast,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "openweather"


def build_weather_provider(settings: config.Settings | None = None) -> WeatherProvider:
    """Instantiate the configured weather provider."""
    settings = settings or config.settings
    source = (settings.weather_source or DEFAULT_SOURCE_NAME).lower()

    if source == "openweather":
        if not settings.openweather_api_key:
            logger.warning("No OpenWeatherMap API key configured; weather requests will fail until one is set")
        logger.info("Using OpenWeatherMap provider", extra={"base_url": settings.openweather_base_url})
        options = {
            "api_key": settings.openweather_api_key,
            "base_url": settings.openweather_base_url,
            "units": settings.weather_units,
            "lang": settings.weather_lang,
            "timeout": settings.request_timeout_seconds,
        }
        return CallableWeatherProvider(
            current=partial(fetch_current_weather, **options),
            current_by_city=partial(fetch_current_weather_by_city, **options),
            forecast=partial(fetch_forecast, **options),
        )

    raise ValueError(f"Unknown weather source '{source}'")
