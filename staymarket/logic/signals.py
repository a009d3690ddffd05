"""Per-listing price signals."""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from staymarket.ingest.models import Listing, PriceSample
from staymarket.utils.dates import as_aware, days_before, utc_now

MOMENTUM_WINDOW_DAYS = int(os.environ.get("MOMENTUM_WINDOW_DAYS", 30))
SURGE_WINDOW_DAYS = int(os.environ.get("SURGE_WINDOW_DAYS", 7))
FRESHNESS_HOURS = float(os.environ.get("FRESHNESS_HOURS", 24))


def window_samples(
    history: Iterable[PriceSample], window_days: int, now: datetime | None = None
) -> list[PriceSample]:
    """Samples inside ``[now - window_days, now]``, oldest first."""
    now = as_aware(now or utc_now())
    start = days_before(now, window_days)
    inside = [s for s in history if start <= as_aware(s.timestamp) <= now]
    inside.sort(key=lambda s: as_aware(s.timestamp))
    return inside


def price_trend(history: Iterable[PriceSample], window_days: int, now: datetime | None = None) -> float:
    """Percent change between the first and last sample of the trailing window."""
    if window_days <= 0:
        raise ValueError("window_days must be positive")
    samples = window_samples(history, window_days, now)
    if len(samples) < 2:
        return 0.0
    first = samples[0].price
    last = samples[-1].price
    if not first:
        return 0.0
    return (last - first) / first * 100


def count_trending_above(
    listings: Sequence[Listing], threshold_pct: float, window_days: int, now: datetime | None = None
) -> int:
    return sum(1 for listing in listings if price_trend(listing.price_history, window_days, now) > threshold_pct)


def is_fresh(listing: Listing, now: datetime, hours: float = FRESHNESS_HOURS) -> bool:
    if listing.last_scraped_at is None:
        return False
    return as_aware(listing.last_scraped_at) >= as_aware(now) - timedelta(hours=hours)


def share(count: int, total: int) -> float:
    """``count`` as a percentage of ``total``; 0 for an empty total."""
    if total <= 0:
        return 0.0
    return count / total * 100
