"""Listing data sources for the analyzer.

The analyzer reads listings through a :class:`DataSource`. The live source
wraps the SQL store; the synthetic source generates plausible listings for
demos and local development. One of them is picked at startup by
:func:`select_data_source`.
"""

from __future__ import annotations

import logging
import os
import random
from datetime import datetime, timedelta
from typing import Protocol, Sequence

from sqlalchemy.engine import Engine

from staymarket.db.store import ListingStore, city_key
from staymarket.ingest import load_cities
from staymarket.ingest.models import Availability, City, Listing, PriceSample, Rating
from staymarket.utils.dates import utc_now

logger = logging.getLogger(__name__)

SYNTHETIC_SEED = os.environ.get("SYNTHETIC_SEED", "staymarket")
SYNTHETIC_LISTINGS = int(os.environ.get("SYNTHETIC_LISTINGS", 30))
SYNTHETIC_HISTORY_DAYS = 30
ID_BLOCK = 1000

BASE_PRICES = {
    "resort": (800.0, 1200.0),
    "hotel": (300.0, 500.0),
    "pousada": (200.0, 300.0),
    "apartment": (250.0, 350.0),
    "chalet": (350.0, 450.0),
    "hostel": (80.0, 120.0),
}


class DataSource(Protocol):
    def cities(self) -> list[str]:
        ...

    def active_listings(self, city: str) -> list[Listing]:
        ...

    def find_listing(self, listing_id: int) -> Listing | None:
        ...


class StoreDataSource:
    def __init__(self, store: ListingStore) -> None:
        self.store = store

    def cities(self) -> list[str]:
        return self.store.active_cities()

    def active_listings(self, city: str) -> list[Listing]:
        return self.store.find_active_listings_by_city(city)

    def find_listing(self, listing_id: int) -> Listing | None:
        return self.store.find_listing(listing_id)


class SyntheticDataSource:
    """Deterministic fake listings per city, seeded by city name."""

    def __init__(
        self,
        cities: Sequence[City] | None = None,
        *,
        listings_per_city: int = SYNTHETIC_LISTINGS,
        seed: str = SYNTHETIC_SEED,
        now: datetime | None = None,
    ) -> None:
        if not 0 < listings_per_city < ID_BLOCK:
            raise ValueError(f"listings_per_city must be between 1 and {ID_BLOCK - 1}")
        self._cities = list(cities) if cities is not None else load_cities()
        self.listings_per_city = listings_per_city
        self.seed = seed
        self._now = now

    def cities(self) -> list[str]:
        return [city.name for city in self._cities]

    def active_listings(self, city: str) -> list[Listing]:
        wanted = city_key(city)
        for index, known in enumerate(self._cities):
            if city_key(known.name) == wanted:
                return self._generate(index, known)
        return []

    def find_listing(self, listing_id: int) -> Listing | None:
        index, offset = divmod(listing_id - 1, ID_BLOCK)
        if listing_id < 1 or index >= len(self._cities) or offset >= self.listings_per_city:
            return None
        return self._generate(index, self._cities[index])[offset]

    def _generate(self, index: int, city: City) -> list[Listing]:
        rng = random.Random(f"{self.seed}:{city.name}")
        now = self._now or utc_now()
        types = list(BASE_PRICES)
        listings: list[Listing] = []
        for i in range(self.listings_per_city):
            type_ = rng.choice(types)
            low, spread = BASE_PRICES[type_]
            base_price = round(low + rng.random() * spread, 2)
            history = _synthetic_history(rng, base_price, now)
            listings.append(
                Listing(
                    id=index * ID_BLOCK + i + 1,
                    name=f"{type_.title()} {city.name} {i + 1}",
                    type=type_,
                    city=city.name,
                    state=city.state,
                    current_price=history[-1].price,
                    source_platform=rng.choice(("booking", "expedia", "airbnb")),
                    external_id=f"synthetic-{city_key(city.name)}-{i}",
                    rating=Rating(score=round(6 + rng.random() * 4, 1), total_reviews=rng.randint(20, 519)),
                    availability=Availability(
                        is_available=rng.random() > 0.3,
                        last_checked=now,
                        occupancy_rate=round(rng.random() * 100, 1),
                    ),
                    price_history=history,
                    last_scraped_at=now - timedelta(hours=rng.uniform(0, 36)),
                )
            )
        return listings


def _synthetic_history(rng: random.Random, base_price: float, now: datetime) -> tuple[PriceSample, ...]:
    samples = []
    for days_ago in range(SYNTHETIC_HISTORY_DAYS, -1, -1):
        variation = (rng.random() - 0.5) * 0.3
        samples.append(
            PriceSample(
                timestamp=now - timedelta(days=days_ago),
                price=round(base_price * (1 + variation), 2),
                available=rng.random() > 0.3,
                occupancy_rate=round(rng.random() * 100, 1),
            )
        )
    return tuple(samples)


def select_data_source(engine: Engine, kind: str | None = None) -> DataSource:
    kind = (kind or os.environ.get("DATA_SOURCE", "live")).lower()
    if kind == "synthetic":
        logger.info("Using synthetic listing data")
        return SyntheticDataSource()
    if kind != "live":
        raise ValueError(f"Unknown DATA_SOURCE {kind!r}; expected 'live' or 'synthetic'")
    return StoreDataSource(ListingStore(engine))
