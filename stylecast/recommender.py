"""Deterministic outfit recommendations.

Maps (temperature, gender, style) to a fixed-length, ordered list of
OutfitRecommendation objects. The asset key format is a contract with the
image catalog: `{gender}_{category}_{ordinal}` for the street look and
`{gender}_{category}_minimal_{ordinal}` for the minimal look.
"""

from __future__ import annotations

from typing import Dict, List

from stylecast.classifier import classify
from stylecast.domain import Gender, OutfitRecommendation, Style, TemperatureCategory

NUMBER_OF_VARIANTS = 5

VARIANT_LABELS: Dict[int, str] = {
    1: "Basic Look",
    2: "Casual Look",
    3: "Sporty Look",
    4: "Classic Look",
    5: "Daily Look",
}


def variant_label(ordinal: int) -> str:
    """Return the human label for a 1-based variant ordinal."""
    return VARIANT_LABELS.get(ordinal, f"Recommended Style {ordinal}")


def asset_key(gender: Gender, category: TemperatureCategory, style: Style, ordinal: int) -> str:
    """Build the image catalog key for one variant."""
    if style is Style.MINIMAL:
        return f"{gender.value}_{category.value}_{Style.MINIMAL.value}_{ordinal}"
    return f"{gender.value}_{category.value}_{ordinal}"


def recommend(temperature: float, gender: Gender | str, style: Style | str) -> List[OutfitRecommendation]:
    """Return the ordered outfit suggestions for the given conditions and preferences."""
    gender = Gender(gender)
    style = Style(style)
    category = classify(temperature)

    return [
        OutfitRecommendation(
            asset_key=asset_key(gender, category, style, i),
            title=f"{style.label} {variant_label(i)}",
            description=f"{category.label} • {gender.label}",
        )
        for i in range(1, NUMBER_OF_VARIANTS + 1)
    ]
