from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from staymarket.db.migrate import run_migrations
from staymarket.ingest.models import Availability, Listing, PriceSample, Rating

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def history(*points, now=NOW):
    """Build samples from ``(days_ago, price)`` pairs."""
    return tuple(PriceSample(timestamp=now - timedelta(days=days_ago), price=price) for days_ago, price in points)


def listing(
    listing_id=1,
    price=100.0,
    *,
    type_="hotel",
    city="Gramado",
    state="RS",
    available=True,
    occupancy_rate=None,
    score=None,
    reviews=0,
    samples=(),
    scraped_hours_ago=1,
    name=None,
):
    availability = None
    if available is not None or occupancy_rate is not None:
        availability = Availability(is_available=available, last_checked=NOW, occupancy_rate=occupancy_rate)
    return Listing(
        id=listing_id,
        name=name or f"{type_.title()} {listing_id}",
        type=type_,
        city=city,
        state=state,
        current_price=price,
        source_platform="booking",
        external_id=f"ext-{listing_id}",
        rating=Rating(score=score, total_reviews=reviews) if score is not None else None,
        availability=availability,
        price_history=samples,
        last_scraped_at=NOW - timedelta(hours=scraped_hours_ago) if scraped_hours_ago is not None else None,
    )


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def make_listing():
    return listing


@pytest.fixture()
def make_history():
    return history


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'staymarket.db'}", future=True)
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def bare_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}", future=True)
    yield engine
    engine.dispose()
