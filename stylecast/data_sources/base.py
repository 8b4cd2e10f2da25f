"""Interfaces and helpers for weather data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Protocol

from stylecast.app_types import CurrentWeather, ForecastSample


class WeatherProvider(Protocol):
    """Interface for anything that can provide current weather and forecast samples."""

    def fetch_current(self, latitude: float, longitude: float) -> CurrentWeather:
        """Return the current observation for coordinates."""
        ...

    def fetch_current_by_city(self, city: str) -> CurrentWeather:
        """Return the current observation for a city name."""
        ...

    def fetch_forecast(self, latitude: float, longitude: float) -> List[ForecastSample]:
        """Return forecast samples in ascending timestamp order."""
        ...


@dataclass
class CallableWeatherProvider(WeatherProvider):
    """Wrap three callables so they can be swapped for different backends."""

    current: Callable[..., CurrentWeather]
    current_by_city: Callable[..., CurrentWeather]
    forecast: Callable[..., List[ForecastSample]]

    def fetch_current(self, latitude: float, longitude: float) -> CurrentWeather:
        """Delegate to the configured current-weather callable."""
        return self.current(latitude, longitude)

    def fetch_current_by_city(self, city: str) -> CurrentWeather:
        """Delegate to the configured city lookup callable."""
        return self.current_by_city(city)

    def fetch_forecast(self, latitude: float, longitude: float) -> List[ForecastSample]:
        """Delegate to the configured forecast callable."""
        return self.forecast(latitude, longitude)
