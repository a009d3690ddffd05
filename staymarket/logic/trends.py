"""Price trend reports for single listings and whole cities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

import numpy as np

from staymarket.ingest.models import Listing, PriceSample
from staymarket.logic.signals import price_trend, window_samples
from staymarket.utils.dates import days_before, utc_now

STABLE_BAND_PCT = 5.0


@dataclass(slots=True, frozen=True)
class ListingTrend:
    listing_id: int | None
    name: str
    type: str
    current_price: float
    window_days: int
    trend: float
    history: tuple[PriceSample, ...]
    min_price: float
    max_price: float
    average_price: float


@dataclass(slots=True, frozen=True)
class CityTrends:
    city: str
    window_days: int
    start: datetime
    end: datetime
    overall_trend: float
    increasing: int
    stable: int
    decreasing: int
    listings: tuple[ListingTrend, ...]


def listing_trend(listing: Listing, window_days: int, now: datetime | None = None) -> ListingTrend:
    now = now or utc_now()
    samples = window_samples(listing.price_history, window_days, now)
    prices = [sample.price for sample in samples]
    return ListingTrend(
        listing_id=listing.id,
        name=listing.name,
        type=listing.type,
        current_price=float(listing.current_price),
        window_days=window_days,
        trend=price_trend(listing.price_history, window_days, now),
        history=tuple(samples),
        min_price=float(min(prices)) if prices else 0.0,
        max_price=float(max(prices)) if prices else 0.0,
        average_price=float(np.mean(prices)) if prices else 0.0,
    )


def city_trends(city: str, listings: Sequence[Listing], window_days: int, now: datetime | None = None) -> CityTrends:
    now = now or utc_now()
    trends = [listing_trend(listing, window_days, now) for listing in listings]
    values = [entry.trend for entry in trends]
    return CityTrends(
        city=city,
        window_days=window_days,
        start=days_before(now, window_days),
        end=now,
        overall_trend=float(np.mean(values)) if values else 0.0,
        increasing=sum(1 for value in values if value > STABLE_BAND_PCT),
        stable=sum(1 for value in values if -STABLE_BAND_PCT <= value <= STABLE_BAND_PCT),
        decreasing=sum(1 for value in values if value < -STABLE_BAND_PCT),
        listings=tuple(trends),
    )
