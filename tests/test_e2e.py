from dataclasses import replace
from datetime import timedelta

import pytest

from staymarket.db.store import ListingStore, SnapshotStore
from staymarket.ingest.listings import ListingIngestor
from staymarket.ingest.models import Availability, ListingPayload, Rating
from staymarket.ingest.sources import StoreDataSource
from staymarket.jobs import analysis as jobs
from staymarket.logic.analysis import MarketAnalyzer


class FlakySource(StoreDataSource):
    """Store-backed source whose reads fail for one city."""

    def __init__(self, store, broken_city):
        super().__init__(store)
        self.broken_city = broken_city

    def active_listings(self, city):
        if city == self.broken_city:
            raise RuntimeError("scraper table locked")
        return super().active_listings(city)


@pytest.fixture()
def seeded_engine(engine, now):
    ingestor = ListingIngestor(ListingStore(engine))
    for city, state in (("Gramado", "RS"), ("Canela", "RS"), ("Paraty", "RJ")):
        for i, price in enumerate((180.0, 260.0, 420.0)):
            ingestor.upsert(
                ListingPayload(
                    source_platform="booking",
                    external_id=f"{city}-{i}",
                    name=f"{city} stay {i}",
                    type="hotel",
                    city=city,
                    state=state,
                    price=price,
                    rating=Rating(score=8.0 + i * 0.5, total_reviews=40),
                    availability=Availability(is_available=i != 0),
                ),
                now=now,
            )
    return engine


@pytest.mark.asyncio
async def test_run_market_analysis_isolates_failing_city(monkeypatch, seeded_engine, now):
    store = ListingStore(seeded_engine)
    analyzer = MarketAnalyzer(FlakySource(store, "Canela"), SnapshotStore(seeded_engine), clock=lambda: now)
    monkeypatch.setattr(jobs, "load_dotenv", lambda: None)
    monkeypatch.setattr(jobs, "create_engine_from_env", lambda: seeded_engine)
    monkeypatch.setattr(jobs, "build_analyzer", lambda engine: analyzer)

    results = await jobs.run_market_analysis()

    outcome = {result.city: result.ok for result in results}
    assert outcome == {"Canela": False, "Gramado": True, "Paraty": True}
    snapshots = SnapshotStore(seeded_engine)
    assert snapshots.find_latest_snapshot("Gramado").occupancy.available_listings == 2
    assert snapshots.find_latest_snapshot("Paraty").price.max == 420.0
    assert snapshots.find_latest_snapshot("Canela") is None


@pytest.mark.asyncio
async def test_analyze_cities_with_unknown_city(seeded_engine, now):
    analyzer = MarketAnalyzer(StoreDataSource(ListingStore(seeded_engine)), SnapshotStore(seeded_engine), clock=lambda: now)
    results = await jobs.analyze_cities(analyzer, ["Gramado", "Atlantis"], concurrency=1)
    assert [(result.city, result.ok) for result in results] == [("Gramado", True), ("Atlantis", False)]


def test_price_watch_flags_large_moves(monkeypatch, seeded_engine, now):
    store = ListingStore(seeded_engine)
    ingestor = ListingIngestor(store)
    payload = ListingPayload(
        source_platform="airbnb",
        external_id="paraty-loft",
        name="Paraty loft",
        type="apartment",
        city="Paraty",
        state="RJ",
        price=200.0,
    )
    ingestor.upsert(payload, now=now - timedelta(days=5))
    jumpy = ingestor.upsert(replace(payload, price=260.0), now=now)
    analyzer = MarketAnalyzer(StoreDataSource(store), SnapshotStore(seeded_engine), clock=lambda: now)
    monkeypatch.setattr(jobs, "load_dotenv", lambda: None)

    flagged = jobs.run_price_watch(analyzer)

    assert [(listing_id, name) for listing_id, name, _ in flagged] == [(jumpy.id, "Paraty loft")]
    assert flagged[0][2] == pytest.approx(30.0)
