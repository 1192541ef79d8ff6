"""
Water Content Endpoints

This module exposes the derive-and-cache workflow over HTTP.

Flow for the real-time endpoint:
1. Load the latest measurement
2. Reuse the stored water content if it was already processed
3. Otherwise validate the return loss and compute water content
4. Save new results once
5. Return the values together with the save outcome

Clients are expected to poll /realtime-water-content; repeated polls for
an unchanged measurement are cheap and never create duplicate records.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_coordinator, get_derived_record_store
from api.models import (
    CalculateResponse,
    HistoryResponse,
    RealtimeResponse,
    SaveResponse,
    SaveWaterContentRequest,
)
from api.stores import DerivedRecordStore
from core.coordinator import DeriveCoordinator
from core.records import PersistOutcome

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Water Content"])


def save_message(outcome: PersistOutcome) -> str:
    """Describe the save outcome for humans."""
    if outcome.auto_saved:
        return "Water content saved successfully"
    if outcome.save_skipped:
        return "Water content already saved for this measurement"
    return "Water content calculated (save failed)"


@router.get(
    "/calculate-water-content",
    response_model=CalculateResponse,
    summary="Calculate water content",
    description="""
    Derive water content from the latest measurement without saving it.

    Already processed measurements report the stored value with
    `is_new_calculation=false`.
    """
)
async def calculate_water_content(
    coordinator: DeriveCoordinator = Depends(get_coordinator)
):
    """Calculate water content from latest measurement."""
    result = await coordinator.compute_from_latest()
    return {"success": True, "data": result.to_dict()}


@router.post(
    "/save-water-content",
    response_model=SaveResponse,
    summary="Save water content",
    description="""
    Derive water content from the latest measurement and save it if the
    measurement has not been processed yet.

    A failed save still returns the computed values with
    `auto_saved=false` and `save_error` set.
    """
)
async def save_water_content(
    payload: Optional[SaveWaterContentRequest] = Body(default=None),
    coordinator: DeriveCoordinator = Depends(get_coordinator)
):
    """Save water content to database."""
    notes = payload.notes if payload else None
    outcome = await coordinator.compute_and_persist(notes)

    return {
        "success": True,
        "message": save_message(outcome),
        "data": outcome.to_dict(),
    }


@router.get(
    "/water-content-history",
    response_model=HistoryResponse,
    summary="Get water content history",
    description="Most recent saved water content records, newest first."
)
async def get_water_content_history(
    limit: int = Query(default=10, ge=1, le=1000, description="Max records"),
    derived_records: DerivedRecordStore = Depends(get_derived_record_store)
):
    """Get water content history."""
    logger.debug(f"Fetching water content history (limit: {limit})")
    entries = await derived_records.history(limit)

    return {
        "success": True,
        "count": len(entries),
        "data": [entry.to_dict() for entry in entries],
    }


@router.get(
    "/realtime-water-content",
    response_model=RealtimeResponse,
    summary="Real-time water content",
    description="""
    Poll endpoint: derive water content for the latest measurement and
    save it the first time that measurement is seen.
    """
)
async def get_realtime_water_content(
    coordinator: DeriveCoordinator = Depends(get_coordinator)
):
    """Real-time water content with save-once semantics."""
    outcome = await coordinator.realtime()
    return {"success": True, "realtime": True, "data": outcome.to_dict()}
