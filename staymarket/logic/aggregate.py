"""Descriptive market statistics for one city's listings."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from staymarket.ingest.models import Listing
from staymarket.logic.signals import share

logger = logging.getLogger(__name__)

RATING_BANDS = (
    ("0-5", 0.0, 5.0),
    ("5-7", 5.0, 7.0),
    ("7-8.5", 7.0, 8.5),
    ("8.5-10", 8.5, 10.0),
)


class InvalidListing(ValueError):
    def __init__(self, listing_id: int | None, reason: str) -> None:
        super().__init__(f"listing {listing_id}: {reason}")
        self.listing_id = listing_id
        self.reason = reason


@dataclass(slots=True, frozen=True)
class TypePrice:
    type: str
    count: int
    average_price: float


@dataclass(slots=True, frozen=True)
class PriceSummary:
    average: float
    median: float
    min: float
    max: float
    variation_pct: float
    by_type: tuple[TypePrice, ...] = ()


@dataclass(slots=True, frozen=True)
class TypeOccupancy:
    type: str
    count: int
    available: int
    occupancy_rate: float


@dataclass(slots=True, frozen=True)
class OccupancySummary:
    average: float
    total_listings: int
    available_listings: int
    occupancy_rate: float
    by_type: tuple[TypeOccupancy, ...] = ()


@dataclass(slots=True, frozen=True)
class RatingBand:
    label: str
    lower: float
    upper: float
    count: int
    percentage: float


@dataclass(slots=True, frozen=True)
class RatingSummary:
    average: float
    total_reviews: int
    rated_listings: int
    distribution: tuple[RatingBand, ...] = ()


@dataclass(slots=True, frozen=True)
class MarketAggregate:
    listing_count: int
    price: PriceSummary
    occupancy: OccupancySummary
    rating: RatingSummary

    @property
    def has_data(self) -> bool:
        return self.listing_count > 0

    @classmethod
    def empty(cls) -> "MarketAggregate":
        return cls(
            listing_count=0,
            price=PriceSummary(0.0, 0.0, 0.0, 0.0, 0.0),
            occupancy=OccupancySummary(0.0, 0, 0, 0.0),
            rating=RatingSummary(0.0, 0, 0, _bands([])),
        )


@dataclass(slots=True, frozen=True)
class TypeComparison:
    type: str
    count: int
    average_price: float
    median_price: float
    min_price: float
    max_price: float
    average_rating: float


@dataclass(slots=True, frozen=True)
class OccupancyReport:
    total: int
    available: int
    occupied: int
    unknown: int
    occupancy_rate: float
    by_type: tuple[TypeOccupancy, ...] = ()


def validate_listing(listing: Listing) -> None:
    price = listing.current_price
    if not isinstance(price, (int, float)) or isinstance(price, bool) or not math.isfinite(price):
        raise InvalidListing(listing.id, f"unusable price {price!r}")
    if price < 0:
        raise InvalidListing(listing.id, f"negative price {price!r}")
    rating = listing.rating
    if rating is None:
        return
    score = rating.score
    if not isinstance(score, (int, float)) or not math.isfinite(score) or not 0 <= score <= 10:
        raise InvalidListing(listing.id, f"rating score {score!r} outside 0..10")
    if rating.total_reviews is None or rating.total_reviews < 0:
        raise InvalidListing(listing.id, f"invalid review count {rating.total_reviews!r}")


def usable_listings(listings: Iterable[Listing]) -> list[Listing]:
    usable: list[Listing] = []
    for listing in listings:
        try:
            validate_listing(listing)
        except InvalidListing as exc:
            logger.warning("Skipping listing %s: %s", exc.listing_id, exc.reason)
            continue
        usable.append(listing)
    return usable


def lower_median(values: Sequence[float]) -> float:
    """Median without interpolation: the lower middle value on even counts."""
    if not values:
        return 0.0
    ordered = sorted(values)
    return float(ordered[(len(ordered) - 1) // 2])


def aggregate(listings: Sequence[Listing]) -> MarketAggregate:
    if not listings:
        return MarketAggregate.empty()
    return MarketAggregate(
        listing_count=len(listings),
        price=price_summary(listings),
        occupancy=occupancy_summary(listings),
        rating=rating_summary(listings),
    )


def price_summary(listings: Sequence[Listing]) -> PriceSummary:
    if not listings:
        return PriceSummary(0.0, 0.0, 0.0, 0.0, 0.0)
    prices = [float(listing.current_price) for listing in listings]
    low = min(prices)
    high = max(prices)
    grouped = _type_frame(listings).groupby("type", sort=True)["price"].agg(["count", "mean"])
    by_type = tuple(
        TypePrice(type=str(type_), count=int(row["count"]), average_price=float(row["mean"]))
        for type_, row in grouped.iterrows()
    )
    return PriceSummary(
        average=float(np.mean(prices)),
        median=lower_median(prices),
        min=low,
        max=high,
        variation_pct=(high - low) / low * 100 if low else 0.0,
        by_type=by_type,
    )


def occupancy_rate(listings: Iterable[Listing]) -> float:
    """Percent of listings with known availability that are not available."""
    known, available = _availability_counts(listings)
    return share(known - available, known)


def occupancy_summary(listings: Sequence[Listing]) -> OccupancySummary:
    _, available = _availability_counts(listings)
    reported = [
        listing.availability.occupancy_rate
        for listing in listings
        if listing.availability is not None and listing.availability.occupancy_rate is not None
    ]
    return OccupancySummary(
        average=float(np.mean(reported)) if reported else 0.0,
        total_listings=len(listings),
        available_listings=available,
        occupancy_rate=occupancy_rate(listings),
        by_type=_occupancy_by_type(listings),
    )


def rating_summary(listings: Sequence[Listing]) -> RatingSummary:
    rated = [listing for listing in listings if listing.rating is not None]
    scores = [float(listing.rating.score) for listing in rated]
    return RatingSummary(
        average=float(np.mean(scores)) if scores else 0.0,
        total_reviews=sum(int(listing.rating.total_reviews) for listing in rated),
        rated_listings=len(rated),
        distribution=_bands(scores),
    )


def compare_types(listings: Sequence[Listing]) -> list[TypeComparison]:
    comparison: list[TypeComparison] = []
    for type_, group in _type_frame(listings).groupby("type", sort=True):
        prices = group["price"].tolist()
        scores = group["score"].dropna()
        comparison.append(
            TypeComparison(
                type=str(type_),
                count=len(group),
                average_price=float(np.mean(prices)),
                median_price=lower_median(prices),
                min_price=float(min(prices)),
                max_price=float(max(prices)),
                average_rating=float(scores.mean()) if len(scores) else 0.0,
            )
        )
    return comparison


def occupancy_report(listings: Sequence[Listing]) -> OccupancyReport:
    known, available = _availability_counts(listings)
    return OccupancyReport(
        total=len(listings),
        available=available,
        occupied=known - available,
        unknown=len(listings) - known,
        occupancy_rate=share(known - available, known),
        by_type=_occupancy_by_type(listings),
    )


def _availability_counts(listings: Iterable[Listing]) -> tuple[int, int]:
    known = 0
    available = 0
    for listing in listings:
        state = listing.is_available
        if state is None:
            continue
        known += 1
        if state is True:
            available += 1
    return known, available


def _occupancy_by_type(listings: Sequence[Listing]) -> tuple[TypeOccupancy, ...]:
    rows = []
    for type_, group in _type_frame(listings).groupby("type", sort=True):
        known = int(group["available"].notna().sum())
        available = int(group["available"].eq(True).sum())
        rows.append(
            TypeOccupancy(
                type=str(type_),
                count=len(group),
                available=available,
                occupancy_rate=share(known - available, known),
            )
        )
    return tuple(rows)


def _type_frame(listings: Sequence[Listing]) -> pd.DataFrame:
    """One row per listing; every per-type breakdown groups this frame."""
    return pd.DataFrame(
        {
            "type": [listing.type for listing in listings],
            "price": [float(listing.current_price) for listing in listings],
            "score": [float(listing.rating.score) if listing.rating is not None else np.nan for listing in listings],
            "available": pd.Series([listing.is_available for listing in listings], dtype=object),
        }
    )


def _bands(scores: Sequence[float]) -> tuple[RatingBand, ...]:
    counts = [0] * len(RATING_BANDS)
    last = len(RATING_BANDS) - 1
    for score in scores:
        for idx, (_, lower, upper) in enumerate(RATING_BANDS):
            if lower <= score < upper or (idx == last and score == upper):
                counts[idx] += 1
                break
    return tuple(
        RatingBand(label=label, lower=lower, upper=upper, count=count, percentage=share(count, len(scores)))
        for (label, lower, upper), count in zip(RATING_BANDS, counts)
    )
