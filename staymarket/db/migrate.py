"""Database migration helpers."""

from __future__ import annotations

import sys

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from staymarket.db.session import create_engine_from_env
from staymarket.db.tables import metadata


def run_migrations(engine: Engine) -> None:
    """Create any missing tables."""
    metadata.create_all(engine)


def main() -> None:
    try:
        engine = create_engine_from_env()
    except KeyError as exc:  # pragma: no cover - env failure is user error
        print(f"Missing environment variable: {exc}", file=sys.stderr)
        sys.exit(1)
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
