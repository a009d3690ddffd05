"""Competitive ranking of listings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Sequence

from staymarket.ingest.models import Listing

TOP_N = 5
MIN_REVIEWS_FOR_RANKING = int(os.environ.get("MIN_REVIEWS_FOR_RANKING", 20))


@dataclass(slots=True, frozen=True)
class CompetitorEntry:
    listing_id: int | None
    name: str
    value: float
    rank: int


@dataclass(slots=True, frozen=True)
class CompetitiveSummary:
    top_performers: tuple[CompetitorEntry, ...] = ()
    price_leaders: tuple[CompetitorEntry, ...] = ()


def _id_key(listing: Listing) -> tuple[bool, int]:
    # Listings without an id sort after persisted ones.
    return (listing.id is None, listing.id or 0)


def top_performers(listings: Sequence[Listing], limit: int = TOP_N) -> list[CompetitorEntry]:
    rated = [
        listing
        for listing in listings
        if listing.rating is not None and listing.rating.total_reviews >= MIN_REVIEWS_FOR_RANKING
    ]
    rated.sort(key=lambda listing: (-listing.rating.score, *_id_key(listing)))
    return [
        CompetitorEntry(listing_id=listing.id, name=listing.name, value=float(listing.rating.score), rank=rank)
        for rank, listing in enumerate(rated[:limit], start=1)
    ]


def price_leaders(listings: Sequence[Listing], limit: int = TOP_N) -> list[CompetitorEntry]:
    ordered = sorted(listings, key=lambda listing: (-listing.current_price, *_id_key(listing)))
    return [
        CompetitorEntry(listing_id=listing.id, name=listing.name, value=float(listing.current_price), rank=rank)
        for rank, listing in enumerate(ordered[:limit], start=1)
    ]


def competitive_summary(listings: Sequence[Listing]) -> CompetitiveSummary:
    return CompetitiveSummary(
        top_performers=tuple(top_performers(listings)),
        price_leaders=tuple(price_leaders(listings)),
    )
