from datetime import timedelta

import pytest

from staymarket.db.store import ListingStore
from staymarket.ingest import load_cities
from staymarket.ingest.listings import ListingIngestor
from staymarket.ingest.models import Availability, ListingPayload, Rating


def _payload(price=250.0, type_="pousada", **overrides):
    base = dict(
        source_platform="booking",
        external_id="bk-42",
        name="Pousada do Vale",
        type=type_,
        city="Gramado",
        state="RS",
        price=price,
        rating=Rating(score=8.8, total_reviews=120),
        availability=Availability(is_available=True, occupancy_rate=55.0),
    )
    base.update(overrides)
    return ListingPayload(**base)


def test_upsert_creates_listing_with_first_sample(engine, now):
    ingestor = ListingIngestor(ListingStore(engine))
    listing = ingestor.upsert(_payload(), now=now)
    assert listing.id is not None
    assert listing.current_price == 250.0
    assert [s.price for s in listing.price_history] == [250.0]
    stored = ListingStore(engine).find_listing(listing.id)
    assert stored.price_history[0].occupancy_rate == 55.0
    assert stored.rating.total_reviews == 120


def test_unchanged_price_adds_no_sample(engine, now):
    ingestor = ListingIngestor(ListingStore(engine))
    first = ingestor.upsert(_payload(), now=now)
    second = ingestor.upsert(_payload(name="Pousada do Vale Renovada"), now=now + timedelta(days=1))
    assert second.id == first.id
    assert second.name == "Pousada do Vale Renovada"
    assert len(ListingStore(engine).find_listing(first.id).price_history) == 1


def test_changed_price_appends_sample(engine, now):
    ingestor = ListingIngestor(ListingStore(engine))
    first = ingestor.upsert(_payload(), now=now)
    ingestor.upsert(_payload(price=300.0), now=now + timedelta(days=2))
    stored = ListingStore(engine).find_listing(first.id)
    assert stored.current_price == 300.0
    assert [s.price for s in stored.price_history] == [250.0, 300.0]


def test_missing_availability_is_not_assumed(engine, now):
    store = ListingStore(engine)
    ingestor = ListingIngestor(store)
    unknown = ingestor.upsert(_payload(availability=None), now=now)
    booked = ingestor.upsert(
        _payload(external_id="bk-43", availability=Availability(is_available=False)), now=now
    )
    assert store.find_listing(unknown.id).price_history[0].available is None
    assert store.find_listing(booked.id).price_history[0].available is False


def test_unknown_type_maps_to_other(engine, now):
    listing = ListingIngestor(ListingStore(engine)).upsert(_payload(type_="treehouse"), now=now)
    assert listing.type == "other"


def test_unknown_platform_is_rejected(engine, now):
    with pytest.raises(ValueError):
        ListingIngestor(ListingStore(engine)).upsert(_payload(source_platform="tripadvisor"), now=now)


def test_load_cities():
    cities = load_cities(limit=3)
    assert len(cities) == 3
    assert all(city.name and len(city.state) == 2 for city in cities)
