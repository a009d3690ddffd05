"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pendulum

DEFAULT_TZ = "America/Sao_Paulo"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def utc_now() -> pendulum.DateTime:
    return pendulum.now("UTC")


def as_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_before(now: datetime, days: float) -> datetime:
    return as_aware(now) - timedelta(days=days)
