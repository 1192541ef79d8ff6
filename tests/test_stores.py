"""
Tests for the SQLAlchemy Stores

These tests run the stores against a SQLite file through the aiosqlite
driver.

Run with: pytest tests/test_stores.py -v
"""

from datetime import datetime

import pytest

from api.database import derived_records_table
from api.stores import DerivedRecordStore, MeasurementSource
from core.coordinator import DeriveCoordinator
from core.errors import PersistenceError, SourceUnavailable
from core.records import NewDerivedRecord
from tests.seed import derived_row, measurement_row, open_session, seed_database


def new_record(measurement_id: int = 1, **overrides) -> NewDerivedRecord:
    values = dict(
        measurement_id=measurement_id,
        return_loss_db=-15.0,
        water_content_percent=-10.51,
        frequency=2_400_000_000,
        session_id="session-a",
        notes="test",
    )
    values.update(overrides)
    return NewDerivedRecord(**values)


class TestMeasurementSource:

    @pytest.mark.asyncio
    async def test_empty_table(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite")

        async with open_session(url) as session:
            source = MeasurementSource(session)

            assert await source.latest() is None
            assert await source.count() == 0
            assert await source.recent(5) == []

    @pytest.mark.asyncio
    async def test_latest_is_highest_id(self, tmp_path):
        url = seed_database(
            tmp_path / "db.sqlite",
            measurements=[measurement_row(2, -20.0), measurement_row(9, -11.0), measurement_row(4, -30.0)],
        )

        async with open_session(url) as session:
            latest = await MeasurementSource(session).latest()

        assert latest.id == 9
        assert latest.return_loss_db == -11.0
        assert latest.frequency == 2_400_000_000
        assert latest.session_id == "session-a"
        assert isinstance(latest.created_at, datetime)

    @pytest.mark.asyncio
    async def test_by_id_and_count(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite", measurements=[measurement_row(1), measurement_row(2)])

        async with open_session(url) as session:
            source = MeasurementSource(session)

            assert (await source.by_id(2)).id == 2
            assert await source.by_id(99) is None
            assert await source.count() == 2

    @pytest.mark.asyncio
    async def test_recent_descending_and_limited(self, tmp_path):
        url = seed_database(
            tmp_path / "db.sqlite",
            measurements=[measurement_row(i) for i in range(1, 8)],
        )

        async with open_session(url) as session:
            recent = await MeasurementSource(session).recent(3)

        assert [m.id for m in recent] == [7, 6, 5]

    @pytest.mark.asyncio
    async def test_missing_table_raises_source_unavailable(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite", create_tables=False)

        async with open_session(url) as session:
            with pytest.raises(SourceUnavailable):
                await MeasurementSource(session).latest()


class TestDerivedRecordStore:

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_timestamp(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite", measurements=[measurement_row(1)])

        async with open_session(url) as session:
            store = DerivedRecordStore(session)
            saved = await store.insert(new_record(1))

            assert saved.id is not None
            assert saved.timestamp is not None
            assert saved.measurement_id == 1
            assert saved.water_content_percent == -10.51
            assert saved.notes == "test"
            assert await store.exists_for_source(1)
            assert not await store.exists_for_source(2)
            assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_timestamp_assigned_by_database(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite", measurements=[measurement_row(1)])

        assert derived_records_table.c.timestamp.default is None
        assert derived_records_table.c.timestamp.server_default is not None

        async with open_session(url) as session:
            saved = await DerivedRecordStore(session).insert(new_record(1))

        assert isinstance(saved.timestamp, datetime)

    @pytest.mark.asyncio
    async def test_insert_is_committed(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite", measurements=[measurement_row(1)])

        async with open_session(url) as session:
            await DerivedRecordStore(session).insert(new_record(1))

        async with open_session(url) as session:
            assert await DerivedRecordStore(session).count() == 1

    @pytest.mark.asyncio
    async def test_get_by_source_newest_first(self, tmp_path):
        url = seed_database(
            tmp_path / "db.sqlite",
            measurements=[measurement_row(1), measurement_row(2)],
            derived=[
                derived_row(1, 1, minutes=1, water_content_percent=1.0),
                derived_row(2, 1, minutes=5, water_content_percent=5.0),
                derived_row(3, 2, minutes=3),
            ],
        )

        async with open_session(url) as session:
            records = await DerivedRecordStore(session).get_by_source(1)

        assert [r.id for r in records] == [2, 1]
        assert records[0].water_content_percent == 5.0

    @pytest.mark.asyncio
    async def test_history_ordering_and_limit(self, tmp_path):
        url = seed_database(
            tmp_path / "db.sqlite",
            measurements=[measurement_row(i) for i in range(1, 9)],
            derived=[derived_row(i, i, minutes=(i * 7) % 8) for i in range(1, 9)],
        )

        async with open_session(url) as session:
            history = await DerivedRecordStore(session).history(5)

        assert len(history) == 5
        timestamps = [entry.record.timestamp for entry in history]
        assert all(a > b for a, b in zip(timestamps, timestamps[1:]))

    @pytest.mark.asyncio
    async def test_history_joins_measurement_projection(self, tmp_path):
        url = seed_database(
            tmp_path / "db.sqlite",
            measurements=[measurement_row(1, vswr=1.9, s11_magnitude=0.31, frequency=1_000_000_000)],
            derived=[derived_row(1, 1, minutes=1, frequency=1_000_000_000)],
        )

        async with open_session(url) as session:
            (entry,) = await DerivedRecordStore(session).history(10)

        assert entry.measurement == {"frequency": 1_000_000_000, "s11_magnitude": 0.31, "vswr": 1.9}
        data = entry.to_dict()
        assert data["measurement_id"] == 1
        assert data["measurement"]["vswr"] == 1.9

    @pytest.mark.asyncio
    async def test_history_without_records(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite", measurements=[measurement_row(1)])

        async with open_session(url) as session:
            assert await DerivedRecordStore(session).history() == []

    @pytest.mark.asyncio
    async def test_failures_raise_persistence_error(self, tmp_path):
        url = seed_database(tmp_path / "db.sqlite", create_tables=False)

        async with open_session(url) as session:
            store = DerivedRecordStore(session)

            with pytest.raises(PersistenceError):
                await store.insert(new_record(1))
            with pytest.raises(PersistenceError):
                await store.exists_for_source(1)


class TestCoordinatorOnSqlite:
    """The derive-and-cache workflow against real stores."""

    @pytest.mark.asyncio
    async def test_realtime_twice_inserts_once(self, tmp_path):
        url = seed_database(
            tmp_path / "db.sqlite",
            measurements=[measurement_row(1, -15.0, frequency=2_400_000_000)],
        )

        async with open_session(url) as session:
            coordinator = DeriveCoordinator(MeasurementSource(session), DerivedRecordStore(session))

            first = await coordinator.realtime()
            second = await coordinator.realtime()

            assert first.auto_saved
            assert first.result.is_new_calculation
            assert not second.auto_saved
            assert second.save_skipped
            assert second.result.water_content_percent == first.result.water_content_percent
            assert await DerivedRecordStore(session).count() == 1
