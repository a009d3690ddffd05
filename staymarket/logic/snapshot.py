"""City analysis snapshots."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

from staymarket.ingest.models import Listing
from staymarket.logic.aggregate import (
    OccupancySummary,
    PriceSummary,
    RatingBand,
    RatingSummary,
    TypeOccupancy,
    TypePrice,
    aggregate,
)
from staymarket.logic.demand import score_demand
from staymarket.logic.ranking import CompetitiveSummary, CompetitorEntry, competitive_summary
from staymarket.logic.rules import Alert, Recommendation, build_context, evaluate_alerts, evaluate_recommendations
from staymarket.utils.dates import as_aware, utc_now


@dataclass(slots=True, frozen=True)
class DemandSummary:
    level: str
    score: int
    trend: str
    factors: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class CityAnalysisSnapshot:
    city: str
    state: str
    analysis_date: datetime
    demand: DemandSummary
    price: PriceSummary
    occupancy: OccupancySummary
    rating: RatingSummary
    competitive: CompetitiveSummary
    alerts: tuple[Alert, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()


def build_snapshot(city: str, listings: Sequence[Listing], now: datetime | None = None) -> CityAnalysisSnapshot:
    """Run every analysis step over an already validated listing set."""
    now = now or utc_now()
    market = aggregate(listings)
    demand = score_demand(listings, now)
    ctx = build_context(listings, market, demand, now)
    return CityAnalysisSnapshot(
        city=city,
        state=listings[0].state if listings else "",
        analysis_date=now,
        demand=DemandSummary(level=demand.level, score=demand.score, trend=demand.trend, factors=demand.factors),
        price=market.price,
        occupancy=market.occupancy,
        rating=market.rating,
        competitive=competitive_summary(listings),
        alerts=evaluate_alerts(ctx),
        recommendations=evaluate_recommendations(ctx),
    )


def snapshot_to_dict(snapshot: CityAnalysisSnapshot) -> dict[str, Any]:
    data = asdict(snapshot)
    data["analysis_date"] = as_aware(snapshot.analysis_date).isoformat()
    return data


def snapshot_from_dict(data: Mapping[str, Any]) -> CityAnalysisSnapshot:
    price = data["price"]
    occupancy = data["occupancy"]
    rating = data["rating"]
    competitive = data["competitive"]
    return CityAnalysisSnapshot(
        city=data["city"],
        state=data["state"],
        analysis_date=as_aware(datetime.fromisoformat(data["analysis_date"])),
        demand=DemandSummary(**{**data["demand"], "factors": tuple(data["demand"]["factors"])}),
        price=PriceSummary(
            **{**price, "by_type": tuple(TypePrice(**row) for row in price["by_type"])}
        ),
        occupancy=OccupancySummary(
            **{**occupancy, "by_type": tuple(TypeOccupancy(**row) for row in occupancy["by_type"])}
        ),
        rating=RatingSummary(
            **{**rating, "distribution": tuple(RatingBand(**row) for row in rating["distribution"])}
        ),
        competitive=CompetitiveSummary(
            top_performers=tuple(CompetitorEntry(**row) for row in competitive["top_performers"]),
            price_leaders=tuple(CompetitorEntry(**row) for row in competitive["price_leaders"]),
        ),
        alerts=tuple(Alert(**row) for row in data.get("alerts", ())),
        recommendations=tuple(Recommendation(**row) for row in data.get("recommendations", ())),
    )
