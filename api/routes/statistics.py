"""
Statistics Endpoint

Counts of measurements and derived records plus the latest measurement
and its water content. Recomputed on every request.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_statistics_aggregator
from api.models import StatisticsResponse
from core.statistics import StatisticsAggregator

router = APIRouter(tags=["Statistics"])


@router.get(
    "/statistics",
    response_model=StatisticsResponse,
    summary="Get statistics"
)
async def get_statistics(
    aggregator: StatisticsAggregator = Depends(get_statistics_aggregator)
):
    summary = await aggregator.summary()
    return {"success": True, "statistics": summary.to_dict()}
