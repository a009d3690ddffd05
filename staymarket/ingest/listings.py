"""Listing upsert used by scrapers."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from staymarket.db.store import ListingStore
from staymarket.ingest.models import LISTING_TYPES, SOURCE_PLATFORMS, Listing, ListingPayload, PriceSample
from staymarket.logic.history import record_price
from staymarket.utils.dates import utc_now

logger = logging.getLogger(__name__)


class ListingIngestor:
    def __init__(self, store: ListingStore) -> None:
        self.store = store

    def upsert(self, payload: ListingPayload, *, now: datetime | None = None) -> Listing:
        """Create or refresh the listing keyed by ``(source_platform, external_id)``.

        A price sample is recorded for new listings and whenever the observed
        price differs from the stored current price.
        """
        if payload.source_platform not in SOURCE_PLATFORMS:
            raise ValueError(f"Unknown source platform {payload.source_platform!r}")
        now = now or utc_now()
        listing_type = payload.type if payload.type in LISTING_TYPES else "other"
        existing = self.store.find_listing_by_source(payload.source_platform, payload.external_id)
        sample = PriceSample(
            timestamp=now,
            price=payload.price,
            available=payload.availability.is_available if payload.availability else None,
            occupancy_rate=payload.availability.occupancy_rate if payload.availability else None,
        )
        if existing is None:
            listing = Listing(
                id=None,
                name=payload.name,
                type=listing_type,
                city=payload.city,
                state=payload.state,
                current_price=payload.price,
                source_platform=payload.source_platform,
                external_id=payload.external_id,
                rating=payload.rating,
                availability=payload.availability,
                last_scraped_at=now,
            )
            listing = record_price(listing, sample, now)
            logger.info("Creating listing %s/%s in %s", payload.source_platform, payload.external_id, payload.city)
        else:
            listing = replace(
                existing,
                name=payload.name,
                type=listing_type,
                rating=payload.rating,
                availability=payload.availability,
                last_scraped_at=now,
                is_active=True,
            )
            if payload.price != existing.current_price:
                logger.info(
                    "Price change for listing %s: %s -> %s", existing.id, existing.current_price, payload.price
                )
                listing = record_price(listing, sample, now)
        return self.store.save_listing(listing)
