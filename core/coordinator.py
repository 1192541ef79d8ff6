"""
Derive Coordinator - Idempotent Derive-and-Cache Workflow

Orchestrates the water content workflow for the latest NanoVNA
measurement:

1. Fetch the latest measurement (highest id)
2. Check whether a derived record already exists for it
3. Either reuse the stored percentage or validate and compute a new one
4. Persist new results exactly once
5. Return a uniform envelope regardless of which branch ran

At most one derived record exists per measurement as long as polls for
the same measurement do not overlap. The "already processed" decision is
a check-then-act pair of store round trips, so two overlapping polls on
a fresh measurement can both insert. Enabling the single-flight gate
serializes the whole compute-and-persist sequence per measurement id
inside one process and closes that window for single-worker deployments.

Only the globally latest measurement is ever considered; rows that
arrive faster than the polling interval are not back-filled.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Protocol

from .errors import NoMeasurementData, PersistenceError
from .formula import FormulaEngine
from .records import (
    DeriveResult,
    DerivedRecord,
    HistoryEntry,
    NewDerivedRecord,
    PersistOutcome,
    SourceMeasurement,
)

logger = logging.getLogger(__name__)

SKIP_REASON = "Already processed"
REALTIME_NOTES = "Real-time calculation"


# =========================================
# Store Interfaces
# =========================================

class MeasurementReader(Protocol):
    """Read-only access to upstream measurements."""

    async def latest(self) -> Optional[SourceMeasurement]: ...

    async def by_id(self, measurement_id: int) -> Optional[SourceMeasurement]: ...

    async def count(self) -> int: ...

    async def recent(self, limit: int = 10) -> List[SourceMeasurement]: ...


class DerivedRecordWriter(Protocol):
    """Access to the derived water content records."""

    async def exists_for_source(self, measurement_id: int) -> bool: ...

    async def insert(self, record: NewDerivedRecord) -> DerivedRecord: ...

    async def get_by_source(self, measurement_id: int) -> List[DerivedRecord]: ...

    async def history(self, limit: int = 10) -> List[HistoryEntry]: ...

    async def count(self) -> int: ...


# =========================================
# Single-Flight Gate
# =========================================

class SingleFlightGate:
    """
    Per-key asyncio locks, created on demand and dropped when idle.

    Shared by all requests of one process; holding the gate for a
    measurement id makes concurrent compute-and-persist calls for that
    id run one after another.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._waiters: Dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, key: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class _OpenGate:
    """Gate that never blocks; the default best-effort behaviour."""

    @asynccontextmanager
    async def hold(self, key: int) -> AsyncIterator[None]:
        yield


# =========================================
# Coordinator
# =========================================

class DeriveCoordinator:
    """
    Computes water content for the latest measurement at most once.

    The coordinator holds only its injected collaborators; build one per
    request around request-scoped stores.

    Example:
        coordinator = DeriveCoordinator(measurements, derived_records)
        outcome = await coordinator.realtime()
        outcome.to_dict()
    """

    def __init__(
        self,
        measurements: MeasurementReader,
        derived_records: DerivedRecordWriter,
        formula: Optional[FormulaEngine] = None,
        gate: Optional[SingleFlightGate] = None,
    ):
        self.measurements = measurements
        self.derived_records = derived_records
        self.formula = formula or FormulaEngine()
        self.gate = gate or _OpenGate()

    async def compute_from_latest(self) -> DeriveResult:
        """
        Derive water content for the latest measurement without saving.

        Raises:
            NoMeasurementData: the measurement table is empty
            InvalidInput: a new measurement has a non-numeric return loss
        """
        measurement = await self._fetch_latest()
        return await self._derive(measurement)

    async def persist(self, result: DeriveResult, notes: Optional[str] = None) -> PersistOutcome:
        """
        Save a freshly computed result.

        Results that were already processed are skipped without touching
        the store. Insert failures are reported in the outcome instead of
        being raised, so the computed value always reaches the caller.
        """
        if not result.should_save:
            logger.debug(
                f"Skipping save for measurement {result.measurement_id} - already processed"
            )
            return PersistOutcome(
                result=result,
                auto_saved=False,
                save_skipped=True,
                save_reason=SKIP_REASON,
            )

        record = NewDerivedRecord(
            measurement_id=result.measurement_id,
            return_loss_db=result.return_loss_db,
            water_content_percent=result.water_content_percent,
            frequency=result.frequency,
            session_id=result.session_id,
            notes=notes or f"Calculated from measurement at {result.frequency_ghz} GHz",
        )

        logger.info(f"💾 Saving water content for measurement {result.measurement_id}")
        try:
            saved = await self.derived_records.insert(record)
        except PersistenceError as e:
            logger.error(f"❌ Failed to save water content for measurement {result.measurement_id}: {e}")
            return PersistOutcome(
                result=result,
                auto_saved=False,
                save_skipped=False,
                save_error=str(e),
            )

        logger.info(f"✅ Water content saved with ID: {saved.id}")
        return PersistOutcome(
            result=result,
            auto_saved=True,
            save_skipped=False,
            water_content_id=saved.id,
            saved_at=saved.timestamp,
        )

    async def compute_and_persist(self, notes: Optional[str] = None) -> PersistOutcome:
        """Derive for the latest measurement and save it if new."""
        measurement = await self._fetch_latest()
        async with self.gate.hold(measurement.id):
            result = await self._derive(measurement)
            return await self.persist(result, notes)

    async def realtime(self) -> PersistOutcome:
        """
        Poll entry point: derive, save when new, attach calculation details.

        Safe to call on a tight interval; repeated calls for an unchanged
        latest measurement return the stored value and never insert.
        """
        outcome = await self.compute_and_persist(REALTIME_NOTES)
        outcome.calculation_details = self.formula.describe(
            outcome.result.return_loss_db,
            outcome.result.water_content_percent,
        )
        return outcome

    # =========================================
    # Internals
    # =========================================

    async def _fetch_latest(self) -> SourceMeasurement:
        measurement = await self.measurements.latest()
        if measurement is None:
            raise NoMeasurementData()
        return measurement

    async def _derive(self, measurement: SourceMeasurement) -> DeriveResult:
        already_processed = await self.derived_records.exists_for_source(measurement.id)
        logger.debug(f"Measurement {measurement.id} processed: {already_processed}")

        if already_processed:
            existing = await self.derived_records.get_by_source(measurement.id)
            latest_record = existing[0] if existing else None

            percentage = latest_record.water_content_percent if latest_record else None
            if percentage is None:
                percentage = self.formula.derive(measurement.return_loss_db)

            timestamp = latest_record.timestamp if latest_record and latest_record.timestamp else _utcnow()
            return self._envelope(measurement, percentage, timestamp, is_new=False)

        logger.info(f"🆕 Processing new measurement {measurement.id}")
        check = self.formula.validate(measurement.return_loss_db)
        percentage = self.formula.derive(check.value)
        return self._envelope(measurement, percentage, _utcnow(), is_new=True)

    @staticmethod
    def _envelope(
        measurement: SourceMeasurement,
        percentage: float,
        timestamp: datetime,
        is_new: bool,
    ) -> DeriveResult:
        return DeriveResult(
            measurement_id=measurement.id,
            frequency=measurement.frequency,
            return_loss_db=measurement.return_loss_db,
            water_content_percent=percentage,
            vswr=measurement.vswr,
            session_id=measurement.session_id,
            timestamp=timestamp,
            is_new_calculation=is_new,
            should_save=is_new,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
