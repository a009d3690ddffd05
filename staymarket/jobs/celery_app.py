"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from staymarket.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("staymarket", broker=broker_url, backend=backend_url, include=["staymarket.jobs.analysis"])
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "daily-market-analysis": {
        "task": "staymarket.jobs.analysis.run_market_analysis",
        "schedule": crontab(hour=int(os.environ.get("ANALYSIS_HOUR", "2")), minute=int(os.environ.get("ANALYSIS_MINUTE", "0"))),
    },
    "price-watch": {
        "task": "staymarket.jobs.analysis.run_price_watch",
        "schedule": crontab(minute=0, hour="*/6"),
    },
}


@celery_app.task(name="staymarket.jobs.analysis.run_market_analysis")
def run_market_analysis_task():  # pragma: no cover - executed by worker
    import asyncio

    from staymarket.jobs.analysis import run_market_analysis

    results = asyncio.run(run_market_analysis())
    return {result.city: result.ok for result in results}


@celery_app.task(name="staymarket.jobs.analysis.run_price_watch")
def run_price_watch_task():  # pragma: no cover - executed by worker
    from staymarket.jobs.analysis import run_price_watch

    return len(run_price_watch())


@celery_app.task(name="staymarket.jobs.analysis.analyze_city")
def analyze_city_task(city: str):  # pragma: no cover - executed by worker
    from staymarket.db.session import create_engine_from_env
    from staymarket.logic.analysis import build_analyzer

    result = build_analyzer(create_engine_from_env()).run_city(city)
    return {"city": result.city, "ok": result.ok, "error": result.error}
