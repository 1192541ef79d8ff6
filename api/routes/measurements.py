"""
Measurement Endpoints

Read-only access to the NanoVNA measurements written by the acquisition
pipeline.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_measurement_source
from api.models import (
    LatestReturnLossResponse,
    MeasurementListResponse,
    MeasurementResponse,
)
from api.stores import MeasurementSource
from core.errors import NoMeasurementData

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Measurements"])


@router.get(
    "/latest-return-loss",
    response_model=LatestReturnLossResponse,
    summary="Get latest return loss",
    description="Return the most recent NanoVNA measurement (highest id)."
)
async def get_latest_return_loss(
    measurements: MeasurementSource = Depends(get_measurement_source)
):
    """Get latest return loss reading."""
    latest = await measurements.latest()

    if latest is None:
        raise NoMeasurementData()

    created_at = latest.created_at or datetime.now(timezone.utc)
    return {
        "success": True,
        "data": {
            "id": latest.id,
            "frequency": latest.frequency,
            "return_loss_db": latest.return_loss_db,
            "vswr": latest.vswr,
            "session_id": latest.session_id,
            "timestamp": created_at.isoformat() if isinstance(created_at, datetime) else str(created_at),
        },
    }


@router.get(
    "/measurements/recent",
    response_model=MeasurementListResponse,
    summary="Get recent measurements",
    description="Return up to `limit` measurements, newest first."
)
async def get_recent_measurements(
    limit: int = Query(default=10, ge=1, le=1000, description="Max measurements"),
    measurements: MeasurementSource = Depends(get_measurement_source)
):
    rows = await measurements.recent(limit)
    return {
        "success": True,
        "count": len(rows),
        "data": [row.to_dict() for row in rows],
    }


@router.get(
    "/measurements/{measurement_id}",
    response_model=MeasurementResponse,
    summary="Get measurement by id"
)
async def get_measurement(
    measurement_id: int = Path(..., ge=1),
    measurements: MeasurementSource = Depends(get_measurement_source)
):
    measurement = await measurements.by_id(measurement_id)

    if measurement is None:
        raise NoMeasurementData(f"Measurement {measurement_id} not found")

    return {"success": True, "data": measurement.to_dict()}
