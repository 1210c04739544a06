"""
Shared fixtures: a temporary SQLite database seeded with four tables.

orders (200 rows, i = 1..200)
    id            i
    region        ["North", "East", "South", "West"][i % 4]
    category      "cat_{i % 60:02d}"          60 distinct values
    status        "closed" if i % 3 == 0 else "open"
    amount        1.5 * i
    quantity      i                            200 distinct integers
    order_date    2023-01-01 + i days          200 distinct dates
    customer_phone 9000000000 + i             BIGINT
    note          None for every 10th row

events (400 rows, i = 0..399)
    happened_at   2022-01-01 12:00 + i days    400 distinct timestamps
    kind          ["click", "view"][i % 2]

readings (101 rows, i = 0..100)
    level         i                            integer span of exactly 100
    sensor        "s{i % 50:02d}", None for i = 100   50 distinct values plus one NULL

archive (no rows)
    label
"""
from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    insert,
)

from tablescope.common.config import config
from tablescope.common.database.engine import cleanup_database_connections, create_dashboard_engine, get_engine

REGIONS = ["North", "East", "South", "West"]


def _create_schema(engine):
    metadata = MetaData()
    orders = Table(
        "orders", metadata,
        Column("id", Integer, primary_key=True),
        Column("region", String(20)),
        Column("category", String(20)),
        Column("status", String(10)),
        Column("amount", Float),
        Column("quantity", Integer),
        Column("order_date", Date),
        Column("customer_phone", BigInteger),
        Column("note", String(50), nullable=True),
    )
    events = Table(
        "events", metadata,
        Column("id", Integer, primary_key=True),
        Column("happened_at", DateTime),
        Column("kind", String(10)),
    )
    readings = Table(
        "readings", metadata,
        Column("id", Integer, primary_key=True),
        Column("level", Integer),
        Column("sensor", String(10), nullable=True),
    )
    Table(
        "archive", metadata,
        Column("id", Integer, primary_key=True),
        Column("label", String(20)),
    )
    metadata.create_all(engine)

    order_rows = [
        {
            "id": i,
            "region": REGIONS[i % 4],
            "category": f"cat_{i % 60:02d}",
            "status": "closed" if i % 3 == 0 else "open",
            "amount": 1.5 * i,
            "quantity": i,
            "order_date": date(2023, 1, 1) + timedelta(days=i),
            "customer_phone": 9000000000 + i,
            "note": None if i % 10 == 0 else f"note {i}",
        }
        for i in range(1, 201)
    ]
    event_rows = [
        {
            "id": i + 1,
            "happened_at": datetime(2022, 1, 1, 12, 0) + timedelta(days=i),
            "kind": ["click", "view"][i % 2],
        }
        for i in range(400)
    ]
    reading_rows = [
        {"id": i + 1, "level": i, "sensor": f"s{i % 50:02d}" if i < 100 else None}
        for i in range(101)
    ]

    with engine.begin() as conn:
        conn.execute(insert(orders), order_rows)
        conn.execute(insert(events), event_rows)
        conn.execute(insert(readings), reading_rows)


@pytest.fixture
def engine(tmp_path, monkeypatch):
    """Read-only shared engine bound to a fresh, seeded SQLite file."""
    database_url = f"sqlite:///{tmp_path / 'dashboard.db'}"
    monkeypatch.setattr(config.database, "database_url", database_url)
    monkeypatch.setattr(config.database, "read_only", True)
    cleanup_database_connections()

    seed_engine = create_dashboard_engine(database_url, read_only=False)
    _create_schema(seed_engine)
    seed_engine.dispose()

    yield get_engine()

    cleanup_database_connections()


@pytest.fixture
def client(engine):
    from tablescope.api.server import app

    with TestClient(app) as test_client:
        yield test_client
