"""Scheduled market analysis jobs."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Iterable

from dotenv import load_dotenv

from staymarket.db.session import create_engine_from_env
from staymarket.logic.analysis import CityRunResult, MarketAnalyzer, build_analyzer
from staymarket.logic.aggregate import usable_listings
from staymarket.logic.signals import SURGE_WINDOW_DAYS, price_trend

logger = logging.getLogger(__name__)

ANALYSIS_CONCURRENCY = int(os.environ.get("ANALYSIS_CONCURRENCY", 4))
PRICE_WATCH_THRESHOLD = float(os.environ.get("PRICE_WATCH_THRESHOLD", 15.0))


async def run_market_analysis(cities: Iterable[str] | None = None) -> list[CityRunResult]:
    """Analyse every city in parallel; one city's failure never stops the others."""
    load_dotenv()
    engine = create_engine_from_env()
    analyzer = build_analyzer(engine)
    targets = list(cities) if cities is not None else analyzer.source.cities()
    logger.info("Running market analysis for %s cities", len(targets))
    results = await analyze_cities(analyzer, targets)
    failed = [result.city for result in results if not result.ok]
    logger.info("Market analysis finished: %s ok, %s failed", len(results) - len(failed), len(failed))
    if failed:
        logger.warning("Failed cities: %s", ", ".join(failed))
    return results


async def analyze_cities(
    analyzer: MarketAnalyzer, cities: Iterable[str], *, concurrency: int = ANALYSIS_CONCURRENCY
) -> list[CityRunResult]:
    semaphore = asyncio.Semaphore(max(concurrency, 1))
    loop = asyncio.get_running_loop()

    async def _run(city: str) -> CityRunResult:
        async with semaphore:
            return await loop.run_in_executor(None, analyzer.run_city, city)

    return list(await asyncio.gather(*(_run(city) for city in cities)))


def run_price_watch(analyzer: MarketAnalyzer | None = None) -> list[tuple[int | None, str, float]]:
    """Log listings whose 7-day price change exceeds the watch threshold."""
    load_dotenv()
    analyzer = analyzer or build_analyzer(create_engine_from_env())
    now = analyzer.clock()
    flagged: list[tuple[int | None, str, float]] = []
    for city in analyzer.source.cities():
        for listing in usable_listings(analyzer.source.active_listings(city)):
            trend = price_trend(listing.price_history, SURGE_WINDOW_DAYS, now)
            if abs(trend) > PRICE_WATCH_THRESHOLD:
                logger.warning("Price alert: %s changed %.1f%% in %s days", listing.name, trend, SURGE_WINDOW_DAYS)
                flagged.append((listing.id, listing.name, trend))
    return flagged


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    asyncio.run(run_market_analysis())
