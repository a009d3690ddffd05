from dataclasses import replace
from datetime import timedelta

import pytest

from staymarket.db.store import ListingStore, PersistenceFailure, SnapshotStore
from staymarket.ingest.listings import ListingIngestor
from staymarket.ingest.models import ListingPayload, PriceSample
from staymarket.logic.history import record_price
from staymarket.logic.snapshot import build_snapshot
from staymarket.utils import retry


def test_save_and_find_by_city(engine, now, make_listing, make_history):
    store = ListingStore(engine)
    saved = store.save_listing(
        replace(make_listing(None, 120.0, score=8.5, reviews=40, samples=make_history((3, 100.0), (1, 120.0))), city="Florianópolis")
    )
    assert saved.id is not None
    found = store.find_active_listings_by_city("FLORIANÓPOLIS")
    assert len(found) == 1
    listing = found[0]
    assert listing.current_price == 120.0
    assert listing.rating.score == 8.5
    assert listing.availability.is_available is True
    assert [s.price for s in listing.price_history] == [100.0, 120.0]
    assert listing.price_history[-1].timestamp == now - timedelta(days=1)
    assert listing.last_scraped_at.tzinfo is not None


def test_inactive_listings_are_hidden(engine, make_listing):
    store = ListingStore(engine)
    store.save_listing(replace(make_listing(None), is_active=False))
    assert store.find_active_listings_by_city("Gramado") == []
    assert store.active_cities() == []


def test_save_syncs_pruned_and_new_samples(engine, now, make_listing, make_history):
    store = ListingStore(engine)
    saved = store.save_listing(make_listing(None, 90.0, samples=make_history((400, 80.0), (10, 90.0))))
    later = now + timedelta(days=40)
    updated = record_price(saved, PriceSample(timestamp=later, price=110.0), later)
    store.save_listing(updated)
    reloaded = store.find_listing(saved.id)
    assert [s.price for s in reloaded.price_history] == [90.0, 110.0]
    assert reloaded.current_price == 110.0


def test_find_by_source(engine, make_listing):
    store = ListingStore(engine)
    saved = store.save_listing(make_listing(None))
    assert store.find_listing_by_source("booking", saved.external_id).id == saved.id
    assert store.find_listing_by_source("expedia", saved.external_id) is None


def test_active_cities(engine, make_listing):
    store = ListingStore(engine)
    store.save_listing(make_listing(None))
    store.save_listing(replace(make_listing(None), external_id="other", city="Canela"))
    assert store.active_cities() == ["Canela", "Gramado"]


def test_snapshot_history_is_newest_first(engine, now, make_listing):
    snapshots = SnapshotStore(engine)
    listings = [make_listing(1, 100.0), make_listing(2, 300.0)]
    first = build_snapshot("Gramado", listings, now)
    second = build_snapshot("Gramado", listings, now + timedelta(hours=6))
    snapshots.append_snapshot(first)
    snapshots.append_snapshot(second)
    snapshots.append_snapshot(build_snapshot("Canela", listings, now))
    assert snapshots.find_latest_snapshot("gramado") == second
    history = snapshots.snapshot_history("Gramado", limit=5)
    assert [s.analysis_date for s in history] == [second.analysis_date, first.analysis_date]
    assert snapshots.find_latest_snapshot("Paraty") is None


def test_store_errors_become_persistence_failures(bare_engine, monkeypatch):
    monkeypatch.setattr(retry, "RETRY_ATTEMPTS", 2)
    monkeypatch.setattr(retry, "RETRY_BASE_DELAY", 0.0)
    with pytest.raises(PersistenceFailure):
        SnapshotStore(bare_engine).find_latest_snapshot("Gramado")
    with pytest.raises(PersistenceFailure):
        ListingStore(bare_engine).find_active_listings_by_city("Gramado")


def _payload(price):
    return ListingPayload(
        source_platform="booking",
        external_id="bk-7",
        name="Hotel Serra",
        type="hotel",
        city="Gramado",
        state="RS",
        price=price,
    )


def test_same_instant_price_change_is_stored(engine, now):
    store = ListingStore(engine)
    ingestor = ListingIngestor(store)
    ingestor.upsert(_payload(250.0), now=now)
    returned = ingestor.upsert(_payload(300.0), now=now)
    stored = store.find_listing(returned.id)
    assert [s.price for s in stored.price_history] == [250.0, 300.0]
    assert stored.current_price == stored.price_history[-1].price == 300.0


def test_backdated_sample_is_stored(engine, now):
    store = ListingStore(engine)
    ingestor = ListingIngestor(store)
    ingestor.upsert(_payload(250.0), now=now)
    returned = ingestor.upsert(_payload(200.0), now=now - timedelta(hours=1))
    stored = store.find_listing(returned.id)
    assert [s.price for s in stored.price_history] == [s.price for s in returned.price_history] == [200.0, 250.0]
    assert stored.current_price == stored.price_history[-1].price == 250.0
