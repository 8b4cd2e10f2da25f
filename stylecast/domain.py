"""Domain vocabulary and strict schemas for outfit recommendations and likes.

This module defines the stable contract shared by the recommender, the liked
items sync and the HTTP layer: enums with their display labels and the
Pydantic models that flow between them. No selection logic lives here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class TemperatureCategory(str, Enum):
    """Temperature band driving outfit selection; the value is the asset folder name."""
    COLD = "cold"
    COOL = "cool"
    MILD = "mild"
    HOT = "hot"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @property
    def message(self) -> str:
        """Seasonal recommendation blurb shown next to the outfit list."""
        return _CATEGORY_MESSAGES[self]


_CATEGORY_LABELS: Dict[TemperatureCategory, str] = {
    TemperatureCategory.COLD: "5°C and below",
    TemperatureCategory.COOL: "6°C to 16°C",
    TemperatureCategory.MILD: "17°C to 27°C",
    TemperatureCategory.HOT: "28°C and above",
}

_CATEGORY_MESSAGES: Dict[TemperatureCategory, str] = {
    TemperatureCategory.COLD: "Winter outfits recommended today (5°C and below).",
    TemperatureCategory.COOL: "Autumn and early spring outfits recommended today (6-16°C).",
    TemperatureCategory.MILD: "Spring and autumn outfits recommended today (17-27°C).",
    TemperatureCategory.HOT: "Summer outfits recommended today (28°C and above).",
}


class Gender(str, Enum):
    """Gender preference; the value is the asset folder name."""
    MEN = "men"
    WOMEN = "women"

    @property
    def label(self) -> str:
        return _GENDER_LABELS[self]


_GENDER_LABELS: Dict[Gender, str] = {
    Gender.MEN: "Men",
    Gender.WOMEN: "Women",
}


class Style(str, Enum):
    """Style preference. Street is the default look and adds no asset-key segment."""
    STREET = "street"
    MINIMAL = "minimal"

    @property
    def label(self) -> str:
        return _STYLE_LABELS[self]


_STYLE_LABELS: Dict[Style, str] = {
    Style.STREET: "Street",
    Style.MINIMAL: "Minimal",
}


class OutfitRecommendation(_StrictBaseModel):
    """One suggested outfit; `asset_key` is the only link to presentation assets."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    asset_key: str
    title: str
    description: str


class StyleItem(_StrictBaseModel):
    """A purchasable piece (cardigan, pants, ...) shown inside a style detail."""
    name: str = Field(min_length=1)
    image_reference: str
    price: str
    shop_url: str | None = None

    @property
    def id(self) -> str:
        """Items are keyed by display name in the liked collection."""
        return self.name


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LikedItem(_StrictBaseModel):
    """A user's saved reference to an outfit piece.

    The document's existence in the remote store is the "liked" flag; there
    is no separate boolean.
    """
    id: str = Field(min_length=1)
    image_reference: str
    name: str
    price: str
    liked_at: datetime = Field(default_factory=_utcnow)

    @field_validator("liked_at", mode="after")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so ordering never mixes naive/aware."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_style_item(cls, item: StyleItem, *, liked_at: datetime | None = None) -> "LikedItem":
        """Build the liked record for `item`, stamped now unless `liked_at` is given."""
        return cls(
            id=item.id,
            image_reference=item.image_reference,
            name=item.name,
            price=item.price,
            liked_at=liked_at or _utcnow(),
        )

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the JSON-safe field map stored remotely.

        `liked_at` is fixed-width UTC ISO-8601 so stores can order by the raw string.
        """
        return {
            "id": self.id,
            "image_reference": self.image_reference,
            "name": self.name,
            "price": self.price,
            "liked_at": self.liked_at.astimezone(timezone.utc).isoformat(timespec="microseconds"),
        }

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any] | None) -> Optional["LikedItem"]:
        """Rebuild from a stored document, or None if required fields are missing."""
        if not data:
            return None
        try:
            return cls(
                id=doc_id,
                image_reference=data["image_reference"],
                name=data["name"],
                price=data["price"],
                liked_at=data["liked_at"],
            )
        except (KeyError, ValidationError):
            return None
