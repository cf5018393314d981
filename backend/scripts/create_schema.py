"""Create the progress tables once the database accepts connections.

Run during deploys before the service starts serving profile traffic.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from quizsync.db.session import create_schema

LOGGER = logging.getLogger("quizsync.schema")
DEFAULT_TIMEOUT = int(os.getenv("QUIZSYNC_DB_SCHEMA_TIMEOUT", "60"))
DEFAULT_POLL_INTERVAL = float(os.getenv("QUIZSYNC_DB_SCHEMA_POLL_INTERVAL", "3"))


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create quiz progress tables with readiness checks.")
    parser.add_argument(
        "--database-url",
        default=os.getenv("QUIZSYNC_DATABASE_URL"),
        help="SQLAlchemy URL of the progress database (default: $QUIZSYNC_DATABASE_URL).",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds to wait for the database to become available (default: {DEFAULT_TIMEOUT}).",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help=f"Seconds between readiness probes (default: {DEFAULT_POLL_INTERVAL}).",
    )
    return parser.parse_args(argv)


def wait_for_database(engine: Engine, *, timeout: int, poll_interval: float) -> None:
    """Poll until a basic SELECT succeeds or ``timeout`` seconds pass."""
    deadline = time.time() + timeout
    last_error: Optional[Exception] = None
    while True:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            LOGGER.info("Database is reachable.")
            return
        except OperationalError as exc:
            last_error = exc
            LOGGER.warning("Database not ready yet: %s", exc)
        except SQLAlchemyError as exc:
            last_error = exc
            LOGGER.error("Database error during readiness probe: %s", exc)
            break
        if time.time() >= deadline:
            break
        time.sleep(poll_interval)

    raise RuntimeError("Database did not become ready in time.") from last_error


def ensure_schema(database_url: str, *, timeout: int, poll_interval: float) -> list[str]:
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    try:
        wait_for_database(engine, timeout=timeout, poll_interval=poll_interval)
        create_schema(engine)
        tables = sorted(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    LOGGER.info("Schema ready: %s", ", ".join(tables))
    return tables


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("QUIZSYNC_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    if not args.database_url:
        LOGGER.error("QUIZSYNC_DATABASE_URL or --database-url must be provided.")
        return 2
    try:
        ensure_schema(args.database_url, timeout=args.timeout, poll_interval=args.poll_interval)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Schema creation failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
