"""
Domain Records for Water Content Derivation

Plain dataclasses shared by the stores, the coordinator and the API.
They hold no behaviour beyond conversion to JSON-ready dictionaries,
so the core stays independent of both the ORM and the web framework.

Records:
- SourceMeasurement: one NanoVNA reading written by the acquisition pipeline
- NewDerivedRecord: snapshot handed to the store for insertion
- DerivedRecord: a persisted water content annotation of a measurement
- HistoryEntry: derived record joined with its measurement projection
- DeriveResult: envelope produced by compute_from_latest()
- PersistOutcome: DeriveResult plus the outcome of the save step
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp, passing through values already stored as text."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


# =========================================
# Measurement Records
# =========================================

@dataclass(frozen=True)
class SourceMeasurement:
    """
    A single measurement row owned by the acquisition pipeline.

    Attributes:
        id: Strictly increasing primary key
        frequency: Sweep frequency in Hz
        return_loss_db: Return loss in dB (typically between -60 and 0)
        vswr: Voltage standing-wave ratio, passed through unmodified
        session_id: Acquisition session identifier
        created_at: When the pipeline wrote the row
        s11_magnitude: Linear |S11| magnitude, when recorded
    """
    id: int
    frequency: int
    return_loss_db: float
    vswr: Optional[float] = None
    session_id: Optional[str] = None
    created_at: Optional[datetime] = None
    s11_magnitude: Optional[float] = None

    @property
    def frequency_ghz(self) -> str:
        """Frequency in GHz formatted with three decimals."""
        return f"{self.frequency / 1e9:.3f}"

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "SourceMeasurement":
        """Build from a database row mapping."""
        return cls(
            id=row["id"],
            frequency=row["frequency"],
            return_loss_db=row["return_loss_db"],
            vswr=row.get("vswr"),
            session_id=row.get("session_id"),
            created_at=row.get("created_at"),
            s11_magnitude=row.get("s11_magnitude"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "frequency": self.frequency,
            "return_loss_db": self.return_loss_db,
            "vswr": self.vswr,
            "s11_magnitude": self.s11_magnitude,
            "session_id": self.session_id,
            "created_at": _isoformat(self.created_at),
        }


# =========================================
# Derived Records
# =========================================

@dataclass(frozen=True)
class NewDerivedRecord:
    """Values snapshotted from a DeriveResult for insertion."""
    measurement_id: int
    return_loss_db: float
    water_content_percent: float
    frequency: int
    session_id: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "measurement_id": self.measurement_id,
            "return_loss_db": self.return_loss_db,
            "water_content_percent": self.water_content_percent,
            "frequency": self.frequency,
            "session_id": self.session_id,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class DerivedRecord:
    """A persisted water content record. Never updated once written."""
    id: int
    measurement_id: int
    return_loss_db: float
    water_content_percent: Optional[float]
    frequency: Optional[int] = None
    session_id: Optional[str] = None
    notes: Optional[str] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "DerivedRecord":
        """Build from a database row mapping."""
        return cls(
            id=row["id"],
            measurement_id=row["measurement_id"],
            return_loss_db=row["return_loss_db"],
            water_content_percent=row.get("water_content_percent"),
            frequency=row.get("frequency"),
            session_id=row.get("session_id"),
            notes=row.get("notes"),
            timestamp=row.get("timestamp"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "measurement_id": self.measurement_id,
            "return_loss_db": self.return_loss_db,
            "water_content_percent": self.water_content_percent,
            "frequency": self.frequency,
            "session_id": self.session_id,
            "notes": self.notes,
            "timestamp": _isoformat(self.timestamp),
        }


@dataclass(frozen=True)
class HistoryEntry:
    """
    A derived record with a reduced view of its source measurement.

    The measurement projection is None when the source row no longer
    exists upstream.
    """
    record: DerivedRecord
    measurement: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data["measurement"] = self.measurement
        return data


# =========================================
# Coordinator Envelopes
# =========================================

@dataclass
class DeriveResult:
    """
    Uniform result of deriving water content from the latest measurement.

    should_save is True only for measurements that had no derived record
    when the result was computed.
    """
    measurement_id: int
    frequency: int
    return_loss_db: float
    water_content_percent: float
    session_id: Optional[str]
    timestamp: datetime
    is_new_calculation: bool
    should_save: bool
    vswr: Optional[float] = None

    @property
    def already_processed(self) -> bool:
        return not self.is_new_calculation

    @property
    def frequency_ghz(self) -> str:
        return f"{self.frequency / 1e9:.3f}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "measurement_id": self.measurement_id,
            "frequency": self.frequency,
            "frequency_ghz": self.frequency_ghz,
            "return_loss_db": self.return_loss_db,
            "water_content_percent": self.water_content_percent,
            "vswr": self.vswr,
            "session_id": self.session_id,
            "timestamp": _isoformat(self.timestamp),
            "is_new_calculation": self.is_new_calculation,
            "already_processed": self.already_processed,
            "should_save": self.should_save,
        }


@dataclass
class PersistOutcome:
    """
    Outcome of the save step, always carrying the computed result.

    A failed insert leaves auto_saved False and save_error populated;
    the derived values in ``result`` are still reported to the caller.
    """
    result: DeriveResult
    auto_saved: bool
    save_skipped: bool
    save_reason: Optional[str] = None
    water_content_id: Optional[int] = None
    saved_at: Optional[datetime] = None
    save_error: Optional[str] = None
    calculation_details: Optional[Dict[str, str]] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the result and the save outcome into one dictionary."""
        data = self.result.to_dict()
        data["auto_saved"] = self.auto_saved
        data["save_skipped"] = self.save_skipped
        if self.save_reason is not None:
            data["save_reason"] = self.save_reason
        if self.water_content_id is not None:
            data["water_content_id"] = self.water_content_id
            data["saved_at"] = _isoformat(self.saved_at)
        if self.save_error is not None:
            data["save_error"] = self.save_error
        if self.calculation_details is not None:
            data["calculation_details"] = self.calculation_details
        return data
