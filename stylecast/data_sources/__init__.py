"""Weather providers and the factory that picks one."""

from .base import CallableWeatherProvider, WeatherProvider
from .factory import build_weather_provider
from .openweather_client import (
    WeatherProviderError,
    fetch_current_weather,
    fetch_current_weather_by_city,
    fetch_forecast,
)

__all__ = [
    "build_weather_provider",
    "WeatherProvider",
    "CallableWeatherProvider",
    "WeatherProviderError",
    "fetch_current_weather",
    "fetch_current_weather_by_city",
    "fetch_forecast",
]
