"""Shared dataclasses and lightweight types used across modules."""

import datetime as dt
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class ForecastSample:
    """One raw 3-hour forecast reading as supplied by a weather provider."""
    timestamp: dt.datetime  # timezone-aware
    temperature: float
    temperature_min: float
    temperature_max: float
    condition_code: str  # provider icon code, e.g. "10d"
    precipitation_probability: float  # 0.0-1.0


@dataclass(frozen=True)
class CurrentWeather:
    """Current observation for a location or city."""
    city: str
    timestamp: dt.datetime  # timezone-aware
    temperature: float
    feels_like: float | None
    temperature_min: float | None
    temperature_max: float | None
    humidity: float | None
    condition_code: str
    description: str


@dataclass(frozen=True)
class HourlyPoint:
    """Near-term forecast point copied verbatim from a sample."""
    timestamp: dt.datetime
    temperature: float
    condition_code: str


@dataclass(frozen=True)
class DailySummary:
    """Aggregated forecast for one calendar date."""
    calendar_date: dt.date
    formatted_label: str
    representative_condition_code: str
    min_temperature: float
    max_temperature: float
    peak_precipitation_probability: int  # percent, 0-100


@dataclass(frozen=True)
class ForecastViews:
    """Hourly and daily views derived from one forecast feed."""
    hourly: List[HourlyPoint] = field(default_factory=list)
    daily: List[DailySummary] = field(default_factory=list)
