"""Table definitions."""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

listings = Table(
    "listings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source_platform", Text, nullable=False),
    Column("external_id", Text),
    Column("name", Text, nullable=False),
    Column("type", Text, nullable=False),
    Column("city", Text, nullable=False),
    Column("city_key", Text, nullable=False, index=True),
    Column("state", Text, nullable=False),
    Column("current_price", Numeric(12, 2, asdecimal=False), nullable=False),
    Column("rating_score", Float),
    Column("rating_reviews", Integer),
    Column("is_available", Boolean),
    Column("last_checked", DateTime(timezone=True)),
    Column("occupancy_rate", Float),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("last_scraped_at", DateTime(timezone=True)),
    UniqueConstraint("source_platform", "external_id", name="uq_listings_source"),
)

price_samples = Table(
    "price_samples",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("listing_id", Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
    Column("ts", DateTime(timezone=True), nullable=False),
    Column("price", Numeric(12, 2, asdecimal=False), nullable=False),
    Column("available", Boolean),
    Column("occupancy_rate", Float),
    Index("ix_price_samples_listing_ts", "listing_id", "ts"),
)

analysis_snapshots = Table(
    "analysis_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("city", Text, nullable=False),
    Column("city_key", Text, nullable=False),
    Column("state", Text, nullable=False),
    Column("analysis_date", DateTime(timezone=True), nullable=False),
    Column("demand_level", Text, nullable=False),
    Column("demand_score", Integer, nullable=False),
    Column("payload", JSON, nullable=False),
    Index("ix_analysis_snapshots_city_date", "city_key", "analysis_date"),
)
