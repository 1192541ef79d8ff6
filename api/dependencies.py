"""
FastAPI Dependencies

Wires request-scoped stores and the core components together. The
single-flight gate lives on app.state because it has to be shared by
every request of the process; everything else is built per request.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_db
from api.stores import DerivedRecordStore, MeasurementSource
from core.coordinator import DeriveCoordinator, SingleFlightGate
from core.formula import FormulaEngine
from core.statistics import StatisticsAggregator

formula_engine = FormulaEngine()


def get_measurement_source(db: AsyncSession = Depends(get_db)) -> MeasurementSource:
    return MeasurementSource(db)


def get_derived_record_store(db: AsyncSession = Depends(get_db)) -> DerivedRecordStore:
    return DerivedRecordStore(db)


def get_coordinator(
    request: Request,
    measurements: MeasurementSource = Depends(get_measurement_source),
    derived_records: DerivedRecordStore = Depends(get_derived_record_store),
) -> DeriveCoordinator:
    gate: Optional[SingleFlightGate] = getattr(request.app.state, "derive_gate", None)
    return DeriveCoordinator(measurements, derived_records, formula=formula_engine, gate=gate)


def get_statistics_aggregator(
    measurements: MeasurementSource = Depends(get_measurement_source),
    derived_records: DerivedRecordStore = Depends(get_derived_record_store),
) -> StatisticsAggregator:
    return StatisticsAggregator(measurements, derived_records, formula=formula_engine)
