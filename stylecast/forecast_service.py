"""Turn a flat 3-hour forecast feed into hourly and daily views."""
from __future__ import annotations

import datetime as dt
import math
from typing import Callable, Dict, Iterable, List, Sequence
from zoneinfo import ZoneInfo

from stylecast.app_types import DailySummary, ForecastSample, ForecastViews, HourlyPoint
from stylecast.data_sources import WeatherProvider

DEFAULT_HOURLY_LIMIT = 8  # ~24h at 3h spacing
DEFAULT_DAILY_LIMIT = 5

DateExtractor = Callable[[dt.datetime], dt.date]
DateLabeler = Callable[[dt.date], str]


def date_in_timezone(tz_name: str) -> DateExtractor:
    """Return an extractor that reads the calendar date in a fixed IANA zone."""
    tzinfo = ZoneInfo(tz_name)

    def _date_of(ts: dt.datetime) -> dt.date:
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=dt.timezone.utc)
        return ts.astimezone(tzinfo).date()

    return _date_of


def _own_date(ts: dt.datetime) -> dt.date:
    """Calendar date in whatever zone the timestamp already carries."""
    return ts.date()


def format_day_label(day: dt.date) -> str:
    """Short list label, e.g. "6.3 (Tue)"."""
    return f"{day.month}.{day.day} ({day.strftime('%a')})"


def _peak_percent(probabilities: Iterable[float]) -> int:
    """Largest finite 0-1 probability as a rounded, clamped integer percent (0 if none)."""
    finite = [p for p in probabilities if math.isfinite(p)]
    if not finite:
        return 0
    return max(0, min(100, int(round(max(finite) * 100))))


def hourly_view(samples: Sequence[ForecastSample], limit: int = DEFAULT_HOURLY_LIMIT) -> List[HourlyPoint]:
    """First `limit` samples, copied verbatim."""
    return [
        HourlyPoint(timestamp=s.timestamp, temperature=s.temperature, condition_code=s.condition_code)
        for s in samples[:max(0, limit)]
    ]


def daily_view(
    samples: Sequence[ForecastSample],
    *,
    date_of: DateExtractor = _own_date,
    limit: int = DEFAULT_DAILY_LIMIT,
    label_for: DateLabeler = format_day_label,
) -> List[DailySummary]:
    """
    Group samples by calendar date and summarize each day.

    Grouping is by date key, so a date that reappears later in the feed joins
    its earlier group. The representative condition is the first sample's
    code for that date, not a majority vote.
    """
    groups: Dict[dt.date, List[ForecastSample]] = {}
    for sample in samples:
        groups.setdefault(date_of(sample.timestamp), []).append(sample)

    out: List[DailySummary] = []
    for day in sorted(groups)[:max(0, limit)]:
        items = groups[day]
        out.append(
            DailySummary(
                calendar_date=day,
                formatted_label=label_for(day),
                representative_condition_code=items[0].condition_code,
                # Both bounds of every sample count, so a sample with them swapped keeps min <= max.
                min_temperature=min(min(s.temperature_min, s.temperature_max) for s in items),
                max_temperature=max(max(s.temperature_min, s.temperature_max) for s in items),
                peak_precipitation_probability=_peak_percent(s.precipitation_probability for s in items),
            )
        )
    return out


def aggregate(
    samples: Sequence[ForecastSample],
    *,
    date_of: DateExtractor = _own_date,
    hourly_limit: int = DEFAULT_HOURLY_LIMIT,
    daily_limit: int = DEFAULT_DAILY_LIMIT,
    label_for: DateLabeler = format_day_label,
) -> ForecastViews:
    """Build the hourly and daily views for an ascending-ordered sample feed."""
    samples = list(samples or [])
    return ForecastViews(
        hourly=hourly_view(samples, hourly_limit),
        daily=daily_view(samples, date_of=date_of, limit=daily_limit, label_for=label_for),
    )


def get_forecast_views(
    latitude: float,
    longitude: float,
    *,
    provider: WeatherProvider,
    timezone: str = "UTC",
    hourly_limit: int = DEFAULT_HOURLY_LIMIT,
    daily_limit: int = DEFAULT_DAILY_LIMIT,
) -> ForecastViews:
    """
    Fetch forecast samples for a location and aggregate them.

    Days are cut in `timezone`; the provider's errors propagate unchanged.
    """
    samples = provider.fetch_forecast(latitude, longitude)
    return aggregate(
        samples,
        date_of=date_in_timezone(timezone),
        hourly_limit=hourly_limit,
        daily_limit=daily_limit,
    )
