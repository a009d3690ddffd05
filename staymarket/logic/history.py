"""Price history maintenance."""

from __future__ import annotations

import os
from dataclasses import replace
from datetime import datetime

from staymarket.ingest.models import Listing, PriceSample
from staymarket.utils.dates import as_aware, days_before, utc_now

RETENTION_DAYS = int(os.environ.get("PRICE_HISTORY_RETENTION_DAYS", 365))


def prune_history(samples: tuple[PriceSample, ...], now: datetime) -> tuple[PriceSample, ...]:
    cutoff = days_before(now, RETENTION_DAYS)
    return tuple(sample for sample in samples if as_aware(sample.timestamp) >= cutoff)


def record_price(listing: Listing, sample: PriceSample, now: datetime | None = None) -> Listing:
    """Append ``sample`` to the listing's history and resync ``current_price``.

    Retention is enforced here: anything older than ``RETENTION_DAYS`` is
    dropped in the same call, including ``sample`` itself when it is stale.
    If no sample survives, the current price is left as it was.
    """
    now = now or utc_now()
    history = sorted((*listing.price_history, sample), key=lambda s: as_aware(s.timestamp))
    kept = prune_history(tuple(history), now)
    current_price = kept[-1].price if kept else listing.current_price
    return replace(listing, price_history=kept, current_price=current_price)
