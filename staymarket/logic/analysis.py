"""Per-city market analysis runs."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.engine import Engine

from staymarket.db.store import PersistenceFailure, SnapshotStore
from staymarket.ingest.models import Listing
from staymarket.ingest.sources import DataSource, select_data_source
from staymarket.logic.aggregate import (
    OccupancyReport,
    TypeComparison,
    compare_types,
    occupancy_report,
    usable_listings,
)
from staymarket.logic.demand import DemandScore, score_demand
from staymarket.logic.signals import MOMENTUM_WINDOW_DAYS, is_fresh
from staymarket.logic.snapshot import CityAnalysisSnapshot, build_snapshot
from staymarket.logic.trends import CityTrends, ListingTrend, city_trends, listing_trend
from staymarket.utils.dates import utc_now

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10
STALE_AFTER_HOURS = float(os.environ.get("STALE_AFTER_HOURS", 6))


class CityNotFound(LookupError):
    def __init__(self, city: str) -> None:
        super().__init__(f"No active listings found for {city}")
        self.city = city


class ListingNotFound(LookupError):
    def __init__(self, listing_id: int) -> None:
        super().__init__(f"Listing {listing_id} not found")
        self.listing_id = listing_id


class AnalysisFailed(RuntimeError):
    """A city run could not be completed; ``previous`` stays the latest snapshot."""

    def __init__(self, city: str, reason: str, previous: CityAnalysisSnapshot | None = None) -> None:
        super().__init__(f"Analysis for {city} failed: {reason}")
        self.city = city
        self.reason = reason
        self.previous = previous


@dataclass(slots=True)
class CityRunResult:
    city: str
    snapshot: CityAnalysisSnapshot | None = None
    error: str | None = None
    previous: CityAnalysisSnapshot | None = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None and self.error is None



@dataclass(slots=True, frozen=True)
class StaleCity:
    city: str
    stale_listings: int
    oldest_update: datetime | None


class MarketAnalyzer:
    def __init__(
        self,
        source: DataSource,
        snapshots: SnapshotStore,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.snapshots = snapshots
        self.clock = clock

    def run_analysis(self, city: str) -> CityAnalysisSnapshot:
        """Compute and append a fresh snapshot for ``city``."""
        now = self.clock()
        try:
            listings = self._listings(city)
            snapshot = build_snapshot(city, listings, now)
            self.snapshots.append_snapshot(snapshot)
        except PersistenceFailure as exc:
            raise AnalysisFailed(city, str(exc), previous=self._previous(city)) from exc
        logger.info(
            "Analysis for %s: demand %s (%s), %s alerts",
            city,
            snapshot.demand.level,
            snapshot.demand.score,
            len(snapshot.alerts),
        )
        return snapshot

    def run_city(self, city: str) -> CityRunResult:
        try:
            return CityRunResult(city=city, snapshot=self.run_analysis(city))
        except AnalysisFailed as exc:
            logger.warning("Skipping %s: %s", city, exc.reason)
            return CityRunResult(city=city, error=exc.reason, previous=exc.previous)
        except CityNotFound as exc:
            logger.warning("Skipping %s: %s", city, exc)
            return CityRunResult(city=city, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure analysing %s", city)
            return CityRunResult(city=city, error=str(exc), previous=self._previous(city))

    def get_latest_analysis(self, city: str, *, generate: bool = True) -> CityAnalysisSnapshot | None:
        latest = self.snapshots.find_latest_snapshot(city)
        if latest is None and generate:
            logger.info("No analysis stored for %s; generating one", city)
            return self.run_analysis(city)
        return latest

    def get_analysis_history(self, city: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[CityAnalysisSnapshot]:
        return self.snapshots.snapshot_history(city, limit)

    def get_trend(self, listing_id: int, window_days: int = MOMENTUM_WINDOW_DAYS) -> ListingTrend:
        listing = self.source.find_listing(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing_trend(listing, window_days, self.clock())

    def get_city_trends(self, city: str, window_days: int = MOMENTUM_WINDOW_DAYS) -> CityTrends:
        return city_trends(city, self._listings(city), window_days, self.clock())

    def get_comparison(self, city: str) -> list[TypeComparison]:
        return compare_types(self._listings(city))

    def get_occupancy(self, city: str) -> OccupancyReport:
        return occupancy_report(self._listings(city))

    def get_demand(self, city: str) -> DemandScore:
        return score_demand(usable_listings(self.source.active_listings(city)), self.clock())

    def get_cities(self) -> list[str]:
        return sorted(self.source.cities())

    def get_stale_cities(self, hours: float = STALE_AFTER_HOURS) -> list[StaleCity]:
        """Cities with active listings not scraped within ``hours``, stalest first.

        A listing that was never scraped counts as stale and sorts first.
        """
        now = self.clock()
        stale: list[StaleCity] = []
        for city in self.source.cities():
            outdated = [listing for listing in self.source.active_listings(city) if not is_fresh(listing, now, hours)]
            if not outdated:
                continue
            scraped = [listing.last_scraped_at for listing in outdated if listing.last_scraped_at is not None]
            never = len(scraped) < len(outdated)
            stale.append(StaleCity(city=city, stale_listings=len(outdated), oldest_update=None if never else min(scraped)))
        stale.sort(key=lambda entry: (entry.oldest_update is not None, entry.oldest_update or now, entry.city))
        return stale

    def _listings(self, city: str) -> list[Listing]:
        listings = usable_listings(self.source.active_listings(city))
        if not listings:
            raise CityNotFound(city)
        return listings

    def _previous(self, city: str) -> CityAnalysisSnapshot | None:
        try:
            return self.snapshots.find_latest_snapshot(city)
        except PersistenceFailure:
            return None


def build_analyzer(engine: Engine, source: DataSource | None = None) -> MarketAnalyzer:
    return MarketAnalyzer(source or select_data_source(engine), SnapshotStore(engine))
