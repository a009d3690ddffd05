"""Seed the database with synthetic listings for a few cities."""

from __future__ import annotations

import os

from staymarket.db.migrate import run_migrations
from staymarket.db.session import create_engine_from_env
from staymarket.db.store import ListingStore
from staymarket.ingest import load_cities
from staymarket.ingest.listings import ListingIngestor
from staymarket.ingest.models import ListingPayload
from staymarket.ingest.sources import SyntheticDataSource


def main() -> None:
    engine = create_engine_from_env()
    run_migrations(engine)
    cities = load_cities(limit=int(os.environ.get("SEED_CITIES", "3")))
    source = SyntheticDataSource(cities)
    ingestor = ListingIngestor(ListingStore(engine))
    seeded = 0
    for city in cities:
        for listing in source.active_listings(city.name):
            ingestor.upsert(
                ListingPayload(
                    source_platform=listing.source_platform,
                    external_id=listing.external_id,
                    name=listing.name,
                    type=listing.type,
                    city=listing.city,
                    state=listing.state,
                    price=listing.current_price,
                    rating=listing.rating,
                    availability=listing.availability,
                )
            )
            seeded += 1
    print(f"Seed complete: {seeded} listings in {len(cities)} cities")


if __name__ == "__main__":
    main()
