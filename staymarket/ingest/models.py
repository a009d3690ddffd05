"""Listing data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

LISTING_TYPES = ("hotel", "pousada", "resort", "hostel", "chalet", "apartment", "other")
SOURCE_PLATFORMS = ("booking", "expedia", "airbnb", "manual", "other")


@dataclass(slots=True, frozen=True)
class City:
    name: str
    state: str


@dataclass(slots=True, frozen=True)
class PriceSample:
    timestamp: datetime
    price: float
    available: bool | None = None
    occupancy_rate: float | None = None


@dataclass(slots=True, frozen=True)
class Rating:
    score: float
    total_reviews: int = 0


@dataclass(slots=True, frozen=True)
class Availability:
    is_available: bool | None
    last_checked: datetime | None = None
    occupancy_rate: float | None = None


@dataclass(slots=True, frozen=True)
class Listing:
    """A trackable rentable unit.

    ``current_price`` mirrors the most recent entry of ``price_history``; use
    :func:`staymarket.logic.history.record_price` to change either.
    """

    id: int | None
    name: str
    type: str
    city: str
    state: str
    current_price: float
    source_platform: str
    external_id: str | None = None
    rating: Rating | None = None
    availability: Availability | None = None
    price_history: tuple[PriceSample, ...] = ()
    is_active: bool = True
    last_scraped_at: datetime | None = None

    @property
    def is_available(self) -> bool | None:
        if self.availability is None:
            return None
        return self.availability.is_available


@dataclass(slots=True)
class ListingPayload:
    """One raw observation handed over by a scraper."""

    source_platform: str
    external_id: str
    name: str
    type: str
    city: str
    state: str
    price: float
    rating: Rating | None = None
    availability: Availability | None = None
