"""
SQLAlchemy Stores for Measurements and Derived Records

Implements the store protocols consumed by the core coordinator on top
of a request-scoped AsyncSession. Every method is a single awaited round
trip; failures are logged here and re-raised as the core error types so
the API can map them without knowing about SQLAlchemy.
"""

import logging
from typing import List, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import derived_records_table, measurements_table
from core.errors import PersistenceError, SourceUnavailable
from core.records import DerivedRecord, HistoryEntry, NewDerivedRecord, SourceMeasurement

logger = logging.getLogger(__name__)


class MeasurementSource:
    """
    Read-only access to the measurements table.

    Args:
        session: SQLAlchemy async session
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def latest(self) -> Optional[SourceMeasurement]:
        """Get the measurement with the highest id, or None if empty."""
        query = select(measurements_table).order_by(measurements_table.c.id.desc()).limit(1)
        try:
            row = (await self.session.execute(query)).mappings().first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch latest measurement: {e}")
            raise SourceUnavailable(f"Failed to fetch latest measurement: {e}") from e

        if row is None:
            logger.info("No measurement data found")
            return None
        return SourceMeasurement.from_mapping(row)

    async def by_id(self, measurement_id: int) -> Optional[SourceMeasurement]:
        """Get a measurement by id."""
        query = select(measurements_table).where(measurements_table.c.id == measurement_id)
        try:
            row = (await self.session.execute(query)).mappings().first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch measurement {measurement_id}: {e}")
            raise SourceUnavailable(f"Failed to fetch measurement {measurement_id}: {e}") from e

        return SourceMeasurement.from_mapping(row) if row else None

    async def count(self) -> int:
        query = select(func.count()).select_from(measurements_table)
        try:
            return (await self.session.execute(query)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to count measurements: {e}")
            raise SourceUnavailable(f"Failed to count measurements: {e}") from e

    async def recent(self, limit: int = 10) -> List[SourceMeasurement]:
        """Get up to ``limit`` measurements, newest id first."""
        query = select(measurements_table).order_by(measurements_table.c.id.desc()).limit(limit)
        try:
            rows = (await self.session.execute(query)).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch recent measurements: {e}")
            raise SourceUnavailable(f"Failed to fetch recent measurements: {e}") from e

        return [SourceMeasurement.from_mapping(row) for row in rows]


class DerivedRecordStore:
    """
    Access to the derived_records table.

    Records are only ever inserted; this store has no update or delete.

    Args:
        session: SQLAlchemy async session
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists_for_source(self, measurement_id: int) -> bool:
        """True if any derived record references the measurement."""
        query = select(
            exists().where(derived_records_table.c.measurement_id == measurement_id)
        )
        try:
            return bool((await self.session.execute(query)).scalar())
        except SQLAlchemyError as e:
            logger.error(f"Failed to check processed status for {measurement_id}: {e}")
            raise PersistenceError(f"Failed to check processed status: {e}") from e

    async def insert(self, record: NewDerivedRecord) -> DerivedRecord:
        """
        Insert a derived record and return it with id and timestamp.

        Raises:
            PersistenceError: on any database failure; the insert is not retried
        """
        query = (
            derived_records_table.insert()
            .values(**record.to_dict())
            .returning(*derived_records_table.c)
        )
        try:
            row = (await self.session.execute(query)).mappings().one()
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert derived record for measurement {record.measurement_id}: {e}")
            await self.session.rollback()
            raise PersistenceError(f"Failed to save water content: {e}") from e

        return DerivedRecord.from_mapping(row)

    async def get_by_source(self, measurement_id: int) -> List[DerivedRecord]:
        """Derived records for one measurement, newest first."""
        query = (
            select(derived_records_table)
            .where(derived_records_table.c.measurement_id == measurement_id)
            .order_by(derived_records_table.c.timestamp.desc(), derived_records_table.c.id.desc())
        )
        try:
            rows = (await self.session.execute(query)).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch derived records for {measurement_id}: {e}")
            raise PersistenceError(f"Failed to fetch water content records: {e}") from e

        return [DerivedRecord.from_mapping(row) for row in rows]

    async def history(self, limit: int = 10) -> List[HistoryEntry]:
        """
        Newest derived records with frequency, magnitude and VSWR of
        their source measurement.
        """
        measurement = measurements_table.alias("m")
        query = (
            select(
                derived_records_table,
                measurement.c.id.label("source_id"),
                measurement.c.frequency.label("source_frequency"),
                measurement.c.s11_magnitude.label("source_s11_magnitude"),
                measurement.c.vswr.label("source_vswr"),
            )
            .select_from(
                derived_records_table.outerjoin(
                    measurement, derived_records_table.c.measurement_id == measurement.c.id
                )
            )
            .order_by(derived_records_table.c.timestamp.desc(), derived_records_table.c.id.desc())
            .limit(limit)
        )
        try:
            rows = (await self.session.execute(query)).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch water content history: {e}")
            raise PersistenceError(f"Failed to fetch water content history: {e}") from e

        entries = []
        for row in rows:
            projection = None
            if row["source_id"] is not None:
                projection = {
                    "frequency": row["source_frequency"],
                    "s11_magnitude": row["source_s11_magnitude"],
                    "vswr": row["source_vswr"],
                }
            entries.append(HistoryEntry(record=DerivedRecord.from_mapping(row), measurement=projection))
        return entries

    async def count(self) -> int:
        query = select(func.count()).select_from(derived_records_table)
        try:
            return (await self.session.execute(query)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to count derived records: {e}")
            raise PersistenceError(f"Failed to count water content records: {e}") from e
