"""Helpers for fetching current weather and 5-day/3-hour forecasts from OpenWeatherMap."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Mapping

import requests_cache
from retry_requests import retry

from stylecast.app_types import CurrentWeather, ForecastSample
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="openweather_client")

# Forecasts refresh every 3 hours upstream; 10 minutes keeps repeat views cheap.
cache_session = requests_cache.CachedSession(".cache", expire_after=600)
session = retry(cache_session, retries=5, backoff_factor=0.2)

OPENWEATHER_BASE_URL = "https://api.openweathermap.org/data/2.5"
DEFAULT_CONDITION_CODE = "01d"


class WeatherProviderError(RuntimeError):
    """Raised when the weather provider is misconfigured or returns unusable data."""


def _base_params(api_key: str | None, units: str, lang: str) -> Dict[str, Any]:
    """Common query params; refuses to call out without an API key."""
    if not api_key:
        raise WeatherProviderError("OpenWeatherMap API key is not configured (STYLECAST_OPENWEATHER_API_KEY)")
    return {"appid": api_key, "units": units, "lang": lang}


def _get_json(url: str, params: Mapping[str, Any], timeout: float) -> Dict[str, Any]:
    resp = session.get(url, params=params, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def _unix_to_utc(seconds: int | float) -> dt.datetime:
    """Convert OpenWeatherMap `dt` (unix seconds) to an aware UTC datetime."""
    return dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc)


def _first_weather(entry: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return the primary weather condition block, or an empty mapping."""
    weather = entry.get("weather") or []
    return weather[0] if weather else {}


def parse_current_payload(data: Mapping[str, Any]) -> CurrentWeather:
    """Normalize a `/weather` response."""
    try:
        main = data["main"]
        condition = _first_weather(data)
        return CurrentWeather(
            city=data.get("name", ""),
            timestamp=_unix_to_utc(data["dt"]),
            temperature=main["temp"],
            feels_like=main.get("feels_like"),
            temperature_min=main.get("temp_min"),
            temperature_max=main.get("temp_max"),
            humidity=main.get("humidity"),
            condition_code=condition.get("icon") or DEFAULT_CONDITION_CODE,
            description=condition.get("description", ""),
        )
    except (KeyError, TypeError) as exc:
        raise WeatherProviderError(f"Malformed current weather payload: missing {exc}") from exc


def parse_forecast_payload(data: Mapping[str, Any]) -> List[ForecastSample]:
    """Normalize a `/forecast` response into samples ordered as the API lists them."""
    out: List[ForecastSample] = []
    for entry in data.get("list") or []:
        try:
            main = entry.get("main") or {}
            temp = float(main["temp"])
            sample = ForecastSample(
                timestamp=_unix_to_utc(entry["dt"]),
                temperature=temp,
                temperature_min=float(main.get("temp_min", temp)),
                temperature_max=float(main.get("temp_max", temp)),
                condition_code=_first_weather(entry).get("icon") or DEFAULT_CONDITION_CODE,
                precipitation_probability=float(entry.get("pop") or 0.0),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping malformed forecast entry", extra={"entry": entry, "error": str(exc)})
            continue
        out.append(sample)
    return out


def fetch_current_weather(latitude: float,
                          longitude: float,
                          *,
                          api_key: str | None,
                          base_url: str = OPENWEATHER_BASE_URL,
                          units: str = "metric",
                          lang: str = "en",
                          timeout: float = 10.0,
                          ) -> CurrentWeather:
    """Fetch the current observation for the given coordinates."""
    params = {"lat": latitude, "lon": longitude, **_base_params(api_key, units, lang)}
    data = _get_json(f"{base_url}/weather", params, timeout)
    return parse_current_payload(data)


def fetch_current_weather_by_city(city: str,
                                  *,
                                  api_key: str | None,
                                  base_url: str = OPENWEATHER_BASE_URL,
                                  units: str = "metric",
                                  lang: str = "en",
                                  timeout: float = 10.0,
                                  ) -> CurrentWeather:
    """Fetch the current observation for a city name."""
    params = {"q": city, **_base_params(api_key, units, lang)}
    data = _get_json(f"{base_url}/weather", params, timeout)
    return parse_current_payload(data)


def fetch_forecast(latitude: float,
                   longitude: float,
                   *,
                   api_key: str | None,
                   base_url: str = OPENWEATHER_BASE_URL,
                   units: str = "metric",
                   lang: str = "en",
                   timeout: float = 10.0,
                   ) -> List[ForecastSample]:
    """Fetch up to 5 days of 3-hour forecast samples."""
    params = {"lat": latitude, "lon": longitude, **_base_params(api_key, units, lang)}
    data = _get_json(f"{base_url}/forecast", params, timeout)
    samples = parse_forecast_payload(data)
    logger.debug("Fetched forecast samples", extra={"count": len(samples)})
    return samples
