"""Temperature banding used by the outfit recommender."""

from __future__ import annotations

from typing import Tuple

from stylecast.domain import TemperatureCategory

# Exclusive upper bounds in °C, increasing. Anything at or above the last bound is hot.
CATEGORY_UPPER_BOUNDS: Tuple[Tuple[float, TemperatureCategory], ...] = (
    (6.0, TemperatureCategory.COLD),
    (17.0, TemperatureCategory.COOL),
    (28.0, TemperatureCategory.MILD),
)


def classify(temperature: float) -> TemperatureCategory:
    """Map a temperature to its band: <6 cold, [6,17) cool, [17,28) mild, >=28 hot."""
    for upper, category in CATEGORY_UPPER_BOUNDS:
        if temperature < upper:
            return category
    return TemperatureCategory.HOT
