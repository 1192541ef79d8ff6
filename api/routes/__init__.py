"""
API Routes Module

Contains all API endpoint implementations organized by domain.
"""

from .measurements import router as measurements_router
from .water_content import router as water_content_router
from .statistics import router as statistics_router

__all__ = [
    "measurements_router",
    "water_content_router",
    "statistics_router",
]
