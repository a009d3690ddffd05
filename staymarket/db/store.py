"""SQL-backed listing and snapshot stores."""

from __future__ import annotations

import functools
import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from staymarket.db.tables import analysis_snapshots, listings, price_samples
from staymarket.ingest.models import Availability, Listing, PriceSample, Rating
from staymarket.logic.snapshot import CityAnalysisSnapshot, snapshot_from_dict, snapshot_to_dict
from staymarket.utils.dates import as_aware
from staymarket.utils.retry import retry

logger = logging.getLogger(__name__)


class PersistenceFailure(RuntimeError):
    """The store could not be reached or rejected a write."""


def _store_call(func):
    retried = retry(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return retried(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Store call %s failed: %s", func.__name__, exc)
            raise PersistenceFailure(f"{func.__name__} failed: {exc}") from exc
    return wrapper


def city_key(city: str) -> str:
    return city.strip().casefold()


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return as_aware(value).astimezone(timezone.utc)


class ListingStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @_store_call
    def find_active_listings_by_city(self, city: str) -> list[Listing]:
        with self.engine.connect() as conn:
            return self._fetch(conn, (listings.c.city_key == city_key(city)) & listings.c.is_active.is_(True))

    @_store_call
    def find_listing(self, listing_id: int) -> Listing | None:
        with self.engine.connect() as conn:
            found = self._fetch(conn, listings.c.id == listing_id)
        return found[0] if found else None

    @_store_call
    def find_listing_by_source(self, source_platform: str, external_id: str) -> Listing | None:
        with self.engine.connect() as conn:
            found = self._fetch(
                conn,
                (listings.c.source_platform == source_platform) & (listings.c.external_id == external_id),
            )
        return found[0] if found else None

    @_store_call
    def active_cities(self) -> list[str]:
        query = (
            select(listings.c.city_key, func.min(listings.c.city))
            .where(listings.c.is_active.is_(True))
            .group_by(listings.c.city_key)
            .order_by(listings.c.city_key)
        )
        with self.engine.connect() as conn:
            return [name for _, name in conn.execute(query)]

    @_store_call
    def save_listing(self, listing: Listing) -> Listing:
        """Write the listing row and sync its sample rows.

        The stored samples are replaced by the listing's retained history in the
        same transaction, so the newest stored sample always carries
        ``current_price``.
        """
        values = _listing_values(listing)
        with self.engine.begin() as conn:
            if listing.id is None:
                listing_id = conn.execute(insert(listings).values(**values)).inserted_primary_key[0]
            else:
                listing_id = listing.id
                conn.execute(update(listings).where(listings.c.id == listing_id).values(**values))
            self._sync_samples(conn, listing_id, listing.price_history)
        return replace(listing, id=listing_id)

    def _sync_samples(self, conn: Connection, listing_id: int, history: tuple[PriceSample, ...]) -> None:
        conn.execute(delete(price_samples).where(price_samples.c.listing_id == listing_id))
        if not history:
            return
        conn.execute(
            insert(price_samples),
            [
                {
                    "listing_id": listing_id,
                    "ts": _utc(sample.timestamp),
                    "price": sample.price,
                    "available": sample.available,
                    "occupancy_rate": sample.occupancy_rate,
                }
                for sample in history
            ],
        )

    def _fetch(self, conn: Connection, where) -> list[Listing]:
        rows = conn.execute(select(listings).where(where).order_by(listings.c.id)).mappings().all()
        if not rows:
            return []
        history: dict[int, list[PriceSample]] = defaultdict(list)
        sample_query = (
            select(price_samples)
            .where(price_samples.c.listing_id.in_([row["id"] for row in rows]))
            .order_by(price_samples.c.listing_id, price_samples.c.ts, price_samples.c.id)
        )
        for sample in conn.execute(sample_query).mappings():
            history[sample["listing_id"]].append(
                PriceSample(
                    timestamp=as_aware(sample["ts"]),
                    price=float(sample["price"]),
                    available=sample["available"],
                    occupancy_rate=sample["occupancy_rate"],
                )
            )
        return [_row_to_listing(row, tuple(history[row["id"]])) for row in rows]


class SnapshotStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @_store_call
    def append_snapshot(self, snapshot: CityAnalysisSnapshot) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(analysis_snapshots).values(
                    city=snapshot.city,
                    city_key=city_key(snapshot.city),
                    state=snapshot.state,
                    analysis_date=_utc(snapshot.analysis_date),
                    demand_level=snapshot.demand.level,
                    demand_score=snapshot.demand.score,
                    payload=snapshot_to_dict(snapshot),
                )
            )
            return int(result.inserted_primary_key[0])

    @_store_call
    def find_latest_snapshot(self, city: str) -> CityAnalysisSnapshot | None:
        found = self._history(city, 1)
        return found[0] if found else None

    @_store_call
    def snapshot_history(self, city: str, limit: int = 10) -> list[CityAnalysisSnapshot]:
        return self._history(city, limit)

    def _history(self, city: str, limit: int) -> list[CityAnalysisSnapshot]:
        query = (
            select(analysis_snapshots.c.payload)
            .where(analysis_snapshots.c.city_key == city_key(city))
            .order_by(analysis_snapshots.c.analysis_date.desc(), analysis_snapshots.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [snapshot_from_dict(payload) for payload in conn.execute(query).scalars()]


def _listing_values(listing: Listing) -> dict[str, Any]:
    rating = listing.rating
    availability = listing.availability
    return {
        "source_platform": listing.source_platform,
        "external_id": listing.external_id,
        "name": listing.name,
        "type": listing.type,
        "city": listing.city,
        "city_key": city_key(listing.city),
        "state": listing.state,
        "current_price": listing.current_price,
        "rating_score": rating.score if rating else None,
        "rating_reviews": rating.total_reviews if rating else None,
        "is_available": availability.is_available if availability else None,
        "last_checked": _utc(availability.last_checked) if availability else None,
        "occupancy_rate": availability.occupancy_rate if availability else None,
        "is_active": listing.is_active,
        "last_scraped_at": _utc(listing.last_scraped_at),
    }


def _row_to_listing(row: Mapping[str, Any], history: tuple[PriceSample, ...]) -> Listing:
    rating = None
    if row["rating_score"] is not None:
        rating = Rating(score=float(row["rating_score"]), total_reviews=int(row["rating_reviews"] or 0))
    availability = None
    if row["is_available"] is not None or row["occupancy_rate"] is not None:
        availability = Availability(
            is_available=row["is_available"],
            last_checked=as_aware(row["last_checked"]) if row["last_checked"] else None,
            occupancy_rate=row["occupancy_rate"],
        )
    return Listing(
        id=row["id"],
        name=row["name"],
        type=row["type"],
        city=row["city"],
        state=row["state"],
        current_price=float(row["current_price"]),
        source_platform=row["source_platform"],
        external_id=row["external_id"],
        rating=rating,
        availability=availability,
        price_history=history,
        is_active=bool(row["is_active"]),
        last_scraped_at=as_aware(row["last_scraped_at"]) if row["last_scraped_at"] else None,
    )
