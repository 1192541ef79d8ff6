"""
Statistics Aggregation

Read-only rollup of both stores for the reporting endpoint. Nothing is
cached; every call re-queries the stores and recomputes the latest
water content through the shared formula.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .coordinator import DerivedRecordWriter, MeasurementReader
from .errors import InvalidInput
from .formula import FormulaEngine
from .records import SourceMeasurement

logger = logging.getLogger(__name__)


@dataclass
class StatisticsSummary:
    """Counts and latest values across measurements and derived records."""
    total_measurements: int
    total_water_content_records: int
    latest_measurement: Optional[SourceMeasurement]
    latest_water_content: Optional[float]
    timestamp: datetime
    backend_status: str = "Running"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_measurements": self.total_measurements,
            "total_water_content_records": self.total_water_content_records,
            "latest_measurement": self.latest_measurement.to_dict() if self.latest_measurement else None,
            "latest_water_content": self.latest_water_content,
            "backend_status": self.backend_status,
            "timestamp": self.timestamp.isoformat(),
        }


class StatisticsAggregator:
    """Builds a StatisticsSummary from the two stores."""

    def __init__(
        self,
        measurements: MeasurementReader,
        derived_records: DerivedRecordWriter,
        formula: Optional[FormulaEngine] = None,
    ):
        self.measurements = measurements
        self.derived_records = derived_records
        self.formula = formula or FormulaEngine()

    async def summary(self) -> StatisticsSummary:
        """
        Aggregate counts and the latest measurement.

        Store failures propagate. An empty measurement table is not an
        error: latest_measurement and latest_water_content are None. A
        latest reading that cannot be evaluated leaves latest_water_content
        as None.
        """
        measurement_count = await self.measurements.count()
        derived_count = await self.derived_records.count()
        latest = await self.measurements.latest()

        latest_water_content = None
        if latest is not None:
            try:
                check = self.formula.validate(latest.return_loss_db)
                latest_water_content = self.formula.derive(check.value)
            except InvalidInput as e:
                logger.warning(f"No water content for measurement {latest.id}: {e.message}")

        return StatisticsSummary(
            total_measurements=measurement_count,
            total_water_content_records=derived_count,
            latest_measurement=latest,
            latest_water_content=latest_water_content,
            timestamp=datetime.now(timezone.utc),
        )
