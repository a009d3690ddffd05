"""City demand scoring."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from staymarket.ingest.models import Listing
from staymarket.logic.aggregate import occupancy_rate
from staymarket.logic.signals import MOMENTUM_WINDOW_DAYS, count_trending_above, is_fresh, share
from staymarket.utils.dates import utc_now

PRICE_INCREASE_THRESHOLD = float(os.environ.get("PRICE_INCREASE_THRESHOLD", 10.0))
HIGH_RATING_SCORE = float(os.environ.get("HIGH_RATING_SCORE", 8.0))
HIGH_RATING_MIN_REVIEWS = int(os.environ.get("HIGH_RATING_MIN_REVIEWS", 50))
PRICE_FACTOR_DISCLOSURE = float(os.environ.get("PRICE_FACTOR_DISCLOSURE", 20.0))
RATING_FACTOR_DISCLOSURE = float(os.environ.get("RATING_FACTOR_DISCLOSURE", 30.0))

# Maximum contribution of each component; by default they weigh 0.3/0.3/0.2/0.2.
CAPS = {
    "occupancy": float(os.environ.get("DEMAND_OCCUPANCY_CAP", 30.0)),
    "momentum": float(os.environ.get("DEMAND_MOMENTUM_CAP", 30.0)),
    "rating": float(os.environ.get("DEMAND_RATING_CAP", 20.0)),
    "freshness": float(os.environ.get("DEMAND_FRESHNESS_CAP", 20.0)),
}

LEVELS = (
    (int(os.environ.get("DEMAND_VERY_HIGH_SCORE", 75)), "very high"),
    (int(os.environ.get("DEMAND_HIGH_SCORE", 50)), "high"),
    (int(os.environ.get("DEMAND_MEDIUM_SCORE", 25)), "medium"),
)

RISING_MIN_COMPONENT = float(os.environ.get("DEMAND_RISING_MIN_COMPONENT", 15.0))
FALLING_MAX_MOMENTUM = float(os.environ.get("DEMAND_FALLING_MAX_MOMENTUM", 5.0))
FALLING_MAX_OCCUPANCY = float(os.environ.get("DEMAND_FALLING_MAX_OCCUPANCY", 15.0))


@dataclass(slots=True, frozen=True)
class DemandComponents:
    occupancy: float = 0.0
    momentum: float = 0.0
    rating: float = 0.0
    freshness: float = 0.0

    @property
    def total(self) -> float:
        return self.occupancy + self.momentum + self.rating + self.freshness


@dataclass(slots=True, frozen=True)
class DemandMetrics:
    occupancy_rate: float = 0.0
    price_increase_rate: float = 0.0
    high_rating_rate: float = 0.0
    activity_rate: float = 0.0


@dataclass(slots=True, frozen=True)
class DemandScore:
    score: int
    level: str
    trend: str
    factors: tuple[str, ...]
    components: DemandComponents = field(default_factory=DemandComponents)
    metrics: DemandMetrics = field(default_factory=DemandMetrics)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def demand_level(score: int) -> str:
    for floor, level in LEVELS:
        if score >= floor:
            return level
    return "low"


def demand_trend(components: DemandComponents) -> str:
    if components.momentum > RISING_MIN_COMPONENT and components.occupancy > RISING_MIN_COMPONENT:
        return "rising"
    if components.momentum < FALLING_MAX_MOMENTUM and components.occupancy < FALLING_MAX_OCCUPANCY:
        return "falling"
    return "stable"


def compute_components(metrics: DemandMetrics) -> DemandComponents:
    return DemandComponents(
        occupancy=min(CAPS["occupancy"], metrics.occupancy_rate / 100 * CAPS["occupancy"]),
        momentum=min(CAPS["momentum"], metrics.price_increase_rate / 50 * CAPS["momentum"]),
        rating=min(CAPS["rating"], metrics.high_rating_rate / 50 * CAPS["rating"]),
        freshness=min(CAPS["freshness"], metrics.activity_rate * CAPS["freshness"] / 100),
    )


def demand_metrics(listings: Sequence[Listing], now: datetime) -> DemandMetrics:
    total = len(listings)
    increases = count_trending_above(listings, PRICE_INCREASE_THRESHOLD, MOMENTUM_WINDOW_DAYS, now)
    highly_rated = sum(1 for listing in listings if _is_highly_rated(listing))
    fresh = sum(1 for listing in listings if is_fresh(listing, now))
    return DemandMetrics(
        occupancy_rate=occupancy_rate(listings),
        price_increase_rate=share(increases, total),
        high_rating_rate=share(highly_rated, total),
        activity_rate=share(fresh, total),
    )


def score_demand(listings: Sequence[Listing], now: datetime | None = None) -> DemandScore:
    """Weighted 0-100 demand score for a city.

    ``now`` is the run time; freshness and the momentum window are measured
    from it so a single snapshot is internally consistent.
    """
    if not listings:
        return DemandScore(score=0, level="low", trend="stable", factors=("no data",))
    now = now or utc_now()
    metrics = demand_metrics(listings, now)
    components = compute_components(metrics)
    score = round_half_up(components.total)
    return DemandScore(
        score=score,
        level=demand_level(score),
        trend=demand_trend(components),
        factors=_factors(metrics),
        components=components,
        metrics=metrics,
    )


def _is_highly_rated(listing: Listing) -> bool:
    rating = listing.rating
    if rating is None:
        return False
    return rating.score >= HIGH_RATING_SCORE and rating.total_reviews >= HIGH_RATING_MIN_REVIEWS


def _factors(metrics: DemandMetrics) -> tuple[str, ...]:
    factors = [f"Occupancy rate: {metrics.occupancy_rate:.1f}%"]
    if metrics.price_increase_rate > PRICE_FACTOR_DISCLOSURE:
        factors.append(f"{metrics.price_increase_rate:.0f}% of listings raised prices")
    if metrics.high_rating_rate > RATING_FACTOR_DISCLOSURE:
        factors.append(f"{metrics.high_rating_rate:.0f}% of listings are highly rated")
    return tuple(factors)
