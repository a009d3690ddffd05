"""FastAPI application exposing market analyses."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from staymarket.db.session import create_engine_from_env
from staymarket.db.store import PersistenceFailure
from staymarket.logic.analysis import (
    STALE_AFTER_HOURS,
    AnalysisFailed,
    CityNotFound,
    ListingNotFound,
    MarketAnalyzer,
    build_analyzer,
)
from staymarket.logic.snapshot import snapshot_to_dict
from staymarket.logic.trends import ListingTrend
from staymarket.utils.dates import utc_now

logger = logging.getLogger(__name__)

app = FastAPI(title="Staymarket Analysis API")


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class PricePoint(BaseModel):
    timestamp: datetime
    price: float


class ListingTrendResponse(BaseModel):
    listing_id: int | None
    name: str
    type: str
    current_price: float
    window_days: int
    trend: float
    history: list[PricePoint]
    min_price: float
    max_price: float
    average_price: float


class CityTrendsResponse(BaseModel):
    city: str
    window_days: int
    start: datetime
    end: datetime
    overall_trend: float
    increasing: int
    stable: int
    decreasing: int
    listings: list[ListingTrendResponse]


class TypeComparisonRow(BaseModel):
    type: str
    count: int
    average_price: float
    median_price: float
    min_price: float
    max_price: float
    average_rating: float


class ComparisonResponse(BaseModel):
    city: str
    total_listings: int
    comparison: list[TypeComparisonRow]


class TypeOccupancyRow(BaseModel):
    type: str
    count: int
    available: int
    occupancy_rate: float


class OccupancyResponse(BaseModel):
    city: str
    total: int
    available: int
    occupied: int
    unknown: int
    occupancy_rate: float
    by_type: list[TypeOccupancyRow]


class DemandResponse(BaseModel):
    city: str
    score: int
    level: str
    trend: str
    factors: list[str]
    metrics: dict[str, float]


class StaleCityRow(BaseModel):
    city: str
    stale_listings: int
    oldest_update: datetime | None


class StaleCitiesResponse(BaseModel):
    hours: float
    cities: list[StaleCityRow]


@lru_cache(maxsize=1)
def get_analyzer() -> MarketAnalyzer:
    return build_analyzer(create_engine_from_env())


@app.exception_handler(CityNotFound)
@app.exception_handler(ListingNotFound)
async def not_found_handler(request: Request, exc: LookupError) -> JSONResponse:
    return JSONResponse({"detail": str(exc)}, status_code=404)


@app.exception_handler(AnalysisFailed)
async def analysis_failed_handler(request: Request, exc: AnalysisFailed) -> JSONResponse:
    previous = snapshot_to_dict(exc.previous) if exc.previous else None
    return JSONResponse({"detail": str(exc), "previous": previous}, status_code=503)


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
    logger.error("Store unavailable for %s: %s", request.url.path, exc)
    return JSONResponse({"detail": "Analysis store unavailable"}, status_code=503)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=utc_now())


@app.get("/cities", response_model=list[str])
def cities(analyzer: MarketAnalyzer = Depends(get_analyzer)) -> list[str]:
    return analyzer.get_cities()


@app.get("/cities/stale", response_model=StaleCitiesResponse)
def stale_cities(
    hours: float = Query(STALE_AFTER_HOURS, gt=0),
    analyzer: MarketAnalyzer = Depends(get_analyzer),
) -> StaleCitiesResponse:
    return StaleCitiesResponse(
        hours=hours,
        cities=[StaleCityRow(**asdict(entry)) for entry in analyzer.get_stale_cities(hours)],
    )


@app.get("/analysis/{city}")
def latest_analysis(city: str, analyzer: MarketAnalyzer = Depends(get_analyzer)) -> dict[str, Any]:
    return snapshot_to_dict(analyzer.get_latest_analysis(city))


@app.post("/analysis/{city}/run")
def run_analysis(city: str, analyzer: MarketAnalyzer = Depends(get_analyzer)) -> dict[str, Any]:
    return snapshot_to_dict(analyzer.run_analysis(city))


@app.get("/analysis/{city}/history")
def analysis_history(
    city: str,
    limit: int = Query(10, ge=1, le=100),
    analyzer: MarketAnalyzer = Depends(get_analyzer),
) -> list[dict[str, Any]]:
    return [snapshot_to_dict(snapshot) for snapshot in analyzer.get_analysis_history(city, limit)]


@app.get("/analysis/{city}/demand", response_model=DemandResponse)
def demand(city: str, analyzer: MarketAnalyzer = Depends(get_analyzer)) -> DemandResponse:
    result = analyzer.get_demand(city)
    return DemandResponse(
        city=city,
        score=result.score,
        level=result.level,
        trend=result.trend,
        factors=list(result.factors),
        metrics=asdict(result.metrics),
    )


@app.get("/analysis/{city}/comparison", response_model=ComparisonResponse)
def comparison(city: str, analyzer: MarketAnalyzer = Depends(get_analyzer)) -> ComparisonResponse:
    rows = analyzer.get_comparison(city)
    return ComparisonResponse(
        city=city,
        total_listings=sum(row.count for row in rows),
        comparison=[TypeComparisonRow(**asdict(row)) for row in rows],
    )


@app.get("/analysis/{city}/occupancy", response_model=OccupancyResponse)
def occupancy(city: str, analyzer: MarketAnalyzer = Depends(get_analyzer)) -> OccupancyResponse:
    report = analyzer.get_occupancy(city)
    return OccupancyResponse(city=city, **asdict(report))


@app.get("/analysis/{city}/trends", response_model=CityTrendsResponse)
def city_trends(
    city: str,
    days: int = Query(30, ge=1, le=365),
    analyzer: MarketAnalyzer = Depends(get_analyzer),
) -> CityTrendsResponse:
    report = analyzer.get_city_trends(city, days)
    return CityTrendsResponse(
        city=report.city,
        window_days=report.window_days,
        start=report.start,
        end=report.end,
        overall_trend=report.overall_trend,
        increasing=report.increasing,
        stable=report.stable,
        decreasing=report.decreasing,
        listings=[_trend_response(entry) for entry in report.listings],
    )


@app.get("/listings/{listing_id}/trend", response_model=ListingTrendResponse)
def listing_trend(
    listing_id: int,
    days: int = Query(30, ge=1, le=365),
    analyzer: MarketAnalyzer = Depends(get_analyzer),
) -> ListingTrendResponse:
    return _trend_response(analyzer.get_trend(listing_id, days))


def _trend_response(entry: ListingTrend) -> ListingTrendResponse:
    return ListingTrendResponse(
        listing_id=entry.listing_id,
        name=entry.name,
        type=entry.type,
        current_price=entry.current_price,
        window_days=entry.window_days,
        trend=entry.trend,
        history=[PricePoint(timestamp=sample.timestamp, price=sample.price) for sample in entry.history],
        min_price=entry.min_price,
        max_price=entry.max_price,
        average_price=entry.average_price,
    )
