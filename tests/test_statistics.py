"""
Tests for Statistics Aggregation

Run with: pytest tests/test_statistics.py -v
"""

import math

import pytest

from core.coordinator import DeriveCoordinator
from core.errors import PersistenceError
from core.statistics import StatisticsAggregator
from tests.doubles import (
    InMemoryMeasurementSource,
    RecordingDerivedRecordStore,
    make_measurement,
)


class TestSummary:

    @pytest.mark.asyncio
    async def test_empty_stores(self):
        aggregator = StatisticsAggregator(InMemoryMeasurementSource(), RecordingDerivedRecordStore())

        summary = await aggregator.summary()

        assert summary.total_measurements == 0
        assert summary.total_water_content_records == 0
        assert summary.latest_measurement is None
        assert summary.latest_water_content is None
        assert summary.to_dict()["latest_measurement"] is None

    @pytest.mark.asyncio
    async def test_counts_and_latest(self):
        source = InMemoryMeasurementSource([make_measurement(1, -15.0), make_measurement(2, -10.0)])
        store = RecordingDerivedRecordStore()
        await DeriveCoordinator(source, store).realtime()

        summary = await StatisticsAggregator(source, store).summary()

        assert summary.total_measurements == 2
        assert summary.total_water_content_records == 1
        assert summary.latest_measurement.id == 2
        assert summary.latest_water_content == -11.3
        assert summary.backend_status == "Running"

    @pytest.mark.asyncio
    async def test_recomputed_each_call(self):
        source = InMemoryMeasurementSource([make_measurement(1, -15.0)])
        aggregator = StatisticsAggregator(source, RecordingDerivedRecordStore())

        first = await aggregator.summary()
        source.add(make_measurement(2, -10.0))
        second = await aggregator.summary()

        assert first.total_measurements == 1
        assert second.total_measurements == 2
        assert second.latest_measurement.id == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("return_loss_db", [None, math.nan, -1e200])
    async def test_unreadable_latest_reading(self, return_loss_db):
        source = InMemoryMeasurementSource([make_measurement(1, -15.0), make_measurement(2, return_loss_db)])

        summary = await StatisticsAggregator(source, RecordingDerivedRecordStore()).summary()

        assert summary.total_measurements == 2
        assert summary.latest_measurement.id == 2
        assert summary.latest_water_content is None

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        class BrokenStore(RecordingDerivedRecordStore):
            async def count(self):
                raise PersistenceError("relation does not exist")

        aggregator = StatisticsAggregator(InMemoryMeasurementSource([make_measurement()]), BrokenStore())

        with pytest.raises(PersistenceError):
            await aggregator.summary()

    @pytest.mark.asyncio
    async def test_to_dict_shape(self):
        source = InMemoryMeasurementSource([make_measurement(4, -10.0)])
        summary = await StatisticsAggregator(source, RecordingDerivedRecordStore()).summary()

        data = summary.to_dict()

        assert data["latest_measurement"]["id"] == 4
        assert data["latest_water_content"] == -11.3
        assert set(data) == {
            "total_measurements",
            "total_water_content_records",
            "latest_measurement",
            "latest_water_content",
            "backend_status",
            "timestamp",
        }
