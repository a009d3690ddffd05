"""Alert and recommendation rules.

Rules are plain table entries: a condition over :class:`RuleContext`, a
message template formatted with the context's fields, and a severity or
priority. Adding a rule means appending to ``ALERT_RULES`` or
``RECOMMENDATION_RULES``.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Sequence

from staymarket.ingest.models import Listing
from staymarket.logic.aggregate import MarketAggregate
from staymarket.logic.demand import DemandScore
from staymarket.logic.signals import SURGE_WINDOW_DAYS, count_trending_above

PRICE_SURGE_THRESHOLD = float(os.environ.get("PRICE_SURGE_THRESHOLD", 20.0))
PRICE_SURGE_SHARE = float(os.environ.get("PRICE_SURGE_SHARE", 0.3))
LOW_AVAILABILITY_OCCUPANCY = float(os.environ.get("LOW_AVAILABILITY_OCCUPANCY", 80.0))
REPOSITIONING_VARIATION = float(os.environ.get("REPOSITIONING_VARIATION", 100.0))
HIGH_DEMAND_LEVELS = frozenset({"high", "very high"})


@dataclass(slots=True, frozen=True)
class RuleContext:
    total_listings: int
    surge_count: int
    surge_threshold: float
    occupancy_rate: float
    occupied_listings: int
    price_variation: float
    demand_level: str
    demand_score: int


@dataclass(slots=True, frozen=True)
class Alert:
    kind: str
    severity: str
    message: str
    affected_listings: int


@dataclass(slots=True, frozen=True)
class Recommendation:
    category: str
    title: str
    description: str
    priority: str


@dataclass(slots=True, frozen=True)
class AlertRule:
    kind: str
    severity: str
    condition: Callable[[RuleContext], bool]
    message: str
    affected: Callable[[RuleContext], int]


@dataclass(slots=True, frozen=True)
class RecommendationRule:
    category: str
    title: str
    condition: Callable[[RuleContext], bool]
    description: str
    priority: str


ALERT_RULES: list[AlertRule] = [
    AlertRule(
        kind="price_surge",
        severity="high",
        condition=lambda ctx: ctx.surge_count > ctx.total_listings * PRICE_SURGE_SHARE,
        message="{surge_count} listings raised prices by more than {surge_threshold:.0f}% in the last week",
        affected=lambda ctx: ctx.surge_count,
    ),
    AlertRule(
        kind="low_availability",
        severity="high",
        condition=lambda ctx: ctx.occupancy_rate > LOW_AVAILABILITY_OCCUPANCY,
        message="High occupancy rate: {occupancy_rate:.1f}%",
        affected=lambda ctx: ctx.occupied_listings,
    ),
]

RECOMMENDATION_RULES: list[RecommendationRule] = [
    RecommendationRule(
        category="demand",
        title="High demand detected",
        condition=lambda ctx: ctx.demand_level in HIGH_DEMAND_LEVELS,
        description="Demand is {demand_level} (score {demand_score}); consider raising prices or adding capacity",
        priority="high",
    ),
    RecommendationRule(
        category="pricing",
        title="Repositioning opportunity",
        condition=lambda ctx: ctx.price_variation > REPOSITIONING_VARIATION,
        description="Prices vary by {price_variation:.0f}% across the market; review positioning against competitors",
        priority="medium",
    ),
]


def build_context(
    listings: Sequence[Listing],
    market: MarketAggregate,
    demand: DemandScore,
    now: datetime | None = None,
) -> RuleContext:
    occupancy = market.occupancy
    known = sum(1 for listing in listings if listing.is_available is not None)
    return RuleContext(
        total_listings=market.listing_count,
        surge_count=count_trending_above(listings, PRICE_SURGE_THRESHOLD, SURGE_WINDOW_DAYS, now),
        surge_threshold=PRICE_SURGE_THRESHOLD,
        occupancy_rate=occupancy.occupancy_rate,
        occupied_listings=known - occupancy.available_listings,
        price_variation=market.price.variation_pct,
        demand_level=demand.level,
        demand_score=demand.score,
    )


def evaluate_alerts(ctx: RuleContext, rules: Sequence[AlertRule] | None = None) -> tuple[Alert, ...]:
    fields = asdict(ctx)
    return tuple(
        Alert(
            kind=rule.kind,
            severity=rule.severity,
            message=rule.message.format(**fields),
            affected_listings=rule.affected(ctx),
        )
        for rule in (ALERT_RULES if rules is None else rules)
        if rule.condition(ctx)
    )


def evaluate_recommendations(
    ctx: RuleContext, rules: Sequence[RecommendationRule] | None = None
) -> tuple[Recommendation, ...]:
    fields = asdict(ctx)
    return tuple(
        Recommendation(
            category=rule.category,
            title=rule.title,
            description=rule.description.format(**fields),
            priority=rule.priority,
        )
        for rule in (RECOMMENDATION_RULES if rules is None else rules)
        if rule.condition(ctx)
    )
