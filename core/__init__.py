"""
Core Module - NanoVNA Water Content

This module contains the framework-agnostic business logic:
- Water content formula and return-loss validation
- Derive coordinator (compute once, persist once, serve cached)
- Statistics aggregation
- Domain records and the error taxonomy

Stores are consumed through small async protocols, so these components
can be driven by the SQLAlchemy stores in the API or by test doubles.
"""

from .errors import (
    WaterContentError,
    NoMeasurementData,
    InvalidInput,
    SourceUnavailable,
    PersistenceError,
    CorsRejected,
)
from .formula import FormulaEngine, ReturnLossCheck, calculate_water_content, FORMULA
from .records import (
    SourceMeasurement,
    NewDerivedRecord,
    DerivedRecord,
    HistoryEntry,
    DeriveResult,
    PersistOutcome,
)
from .coordinator import DeriveCoordinator, SingleFlightGate
from .statistics import StatisticsAggregator, StatisticsSummary

__all__ = [
    # Errors
    "WaterContentError",
    "NoMeasurementData",
    "InvalidInput",
    "SourceUnavailable",
    "PersistenceError",
    "CorsRejected",

    # Formula
    "FormulaEngine",
    "ReturnLossCheck",
    "calculate_water_content",
    "FORMULA",

    # Records
    "SourceMeasurement",
    "NewDerivedRecord",
    "DerivedRecord",
    "HistoryEntry",
    "DeriveResult",
    "PersistOutcome",

    # Workflow
    "DeriveCoordinator",
    "SingleFlightGate",
    "StatisticsAggregator",
    "StatisticsSummary",
]

__version__ = "2.0.0"
