"""
SQLite fixtures for store and API tests.

Tables are created and seeded through a synchronous engine before any
event loop exists; the code under test then opens the same file through
the aiosqlite driver.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Mapping, Optional

from sqlalchemy import create_engine

from api.database import Database, derived_records_table, measurements_table, metadata

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


def measurement_row(measurement_id: int, return_loss_db: float = -15.0, **overrides) -> dict:
    row = {
        "id": measurement_id,
        "frequency": 2_400_000_000,
        "return_loss_db": return_loss_db,
        "vswr": 1.43,
        "s11_magnitude": 0.18,
        "session_id": "session-a",
        "created_at": BASE_TIME + timedelta(seconds=measurement_id),
    }
    row.update(overrides)
    return row


def derived_row(record_id: int, measurement_id: int, minutes: int, **overrides) -> dict:
    row = {
        "id": record_id,
        "measurement_id": measurement_id,
        "return_loss_db": -15.0,
        "water_content_percent": -10.51,
        "frequency": 2_400_000_000,
        "session_id": "session-a",
        "notes": f"seeded {record_id}",
        "timestamp": BASE_TIME + timedelta(minutes=minutes),
    }
    row.update(overrides)
    return row


def seed_database(
    path: Path,
    measurements: Iterable[Mapping] = (),
    derived: Iterable[Mapping] = (),
    create_tables: bool = True,
) -> str:
    """Create (optionally) and seed a SQLite file; return its async URL."""
    engine = create_engine(f"sqlite:///{path}")
    try:
        with engine.begin() as conn:
            if create_tables:
                metadata.create_all(conn)
            measurements = list(measurements)
            derived = list(derived)
            if measurements:
                conn.execute(measurements_table.insert(), measurements)
            if derived:
                conn.execute(derived_records_table.insert(), derived)
    finally:
        engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@asynccontextmanager
async def open_session(url: str, database: Optional[Database] = None):
    """Yield an AsyncSession on ``url``, disposing the engine afterwards."""
    database = database or Database(url)
    try:
        async with database.session() as session:
            yield session
    finally:
        await database.dispose()
