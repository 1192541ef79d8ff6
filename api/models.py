"""
Pydantic Models for API Request/Response Validation

This module defines the data models used by the API for:
- Request body validation
- Response serialization
- Documentation generation (OpenAPI/Swagger)

All models use Pydantic v2 syntax. Timestamps are carried as ISO 8601
strings exactly as produced by the core records.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =========================================
# Request Models
# =========================================

class SaveWaterContentRequest(BaseModel):
    """Optional body for the save endpoint."""
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Free-text notes stored with the derived record"
    )

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat whitespace-only notes as absent so the default note applies."""
        if v is not None and not v.strip():
            return None
        return v

    model_config = {
        "json_schema_extra": {
            "example": {"notes": "Sample B, second sweep"}
        }
    }


# =========================================
# Measurement Models
# =========================================

class MeasurementData(BaseModel):
    """A source measurement as stored by the acquisition pipeline."""
    id: int
    frequency: int = Field(..., description="Sweep frequency in Hz")
    return_loss_db: Optional[float] = Field(None, description="Return loss in dB")
    vswr: Optional[float] = None
    s11_magnitude: Optional[float] = None
    session_id: Optional[str] = None
    created_at: Optional[str] = None


class LatestReturnLossData(BaseModel):
    """Projection of the latest measurement."""
    id: int
    frequency: int
    return_loss_db: Optional[float] = None
    vswr: Optional[float] = None
    session_id: Optional[str] = None
    timestamp: str


class LatestReturnLossResponse(BaseModel):
    success: bool = True
    data: LatestReturnLossData


class MeasurementResponse(BaseModel):
    success: bool = True
    data: MeasurementData


class MeasurementListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[MeasurementData]


# =========================================
# Water Content Models
# =========================================

class DeriveResultData(BaseModel):
    """Water content derived from the latest measurement."""
    measurement_id: int
    frequency: int
    frequency_ghz: str
    return_loss_db: float
    water_content_percent: float
    vswr: Optional[float] = None
    session_id: Optional[str] = None
    timestamp: str
    is_new_calculation: bool
    already_processed: bool
    should_save: bool


class PersistResultData(DeriveResultData):
    """Derived water content plus the outcome of saving it."""
    auto_saved: bool
    save_skipped: bool
    save_reason: Optional[str] = None
    water_content_id: Optional[int] = None
    saved_at: Optional[str] = None
    save_error: Optional[str] = None
    calculation_details: Optional[Dict[str, str]] = None


class CalculateResponse(BaseModel):
    success: bool = True
    data: DeriveResultData


class SaveResponse(BaseModel):
    success: bool = True
    message: str
    data: PersistResultData


class RealtimeResponse(BaseModel):
    success: bool = True
    realtime: bool = True
    data: PersistResultData


class MeasurementProjection(BaseModel):
    """Reduced view of the source measurement of a derived record."""
    frequency: Optional[int] = None
    s11_magnitude: Optional[float] = None
    vswr: Optional[float] = None


class HistoryEntryData(BaseModel):
    """A stored water content record."""
    id: int
    measurement_id: int
    return_loss_db: float
    water_content_percent: Optional[float] = None
    frequency: Optional[int] = None
    session_id: Optional[str] = None
    notes: Optional[str] = None
    timestamp: Optional[str] = None
    measurement: Optional[MeasurementProjection] = None


class HistoryResponse(BaseModel):
    success: bool = True
    count: int
    data: List[HistoryEntryData]


# =========================================
# Statistics Models
# =========================================

class StatisticsData(BaseModel):
    total_measurements: int
    total_water_content_records: int
    latest_measurement: Optional[MeasurementData] = None
    latest_water_content: Optional[float] = None
    backend_status: str
    timestamp: str


class StatisticsResponse(BaseModel):
    success: bool = True
    statistics: StatisticsData


# =========================================
# System Status Models
# =========================================

class SystemHealth(BaseModel):
    """System health check response."""
    status: str = Field(..., description="Always OK while the process serves requests")
    message: str
    timestamp: str = Field(..., description="Current server time")
    version: str = Field(..., description="API version")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    message: str
    timestamp: Optional[str] = None


class CorsErrorResponse(ErrorResponse):
    allowed_origins: List[str]
