"""Ingestion helpers."""

from __future__ import annotations

import pathlib

import yaml

from staymarket.ingest.models import City

CITIES_PATH = pathlib.Path(__file__).with_name("cities.yml")


def load_cities(limit: int | None = None) -> list[City]:
    data = yaml.safe_load(CITIES_PATH.read_text(encoding="utf-8"))
    cities = [City(**item) for item in data]
    if limit:
        return cities[:limit]
    return cities
