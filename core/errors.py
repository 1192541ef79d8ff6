"""
Error Taxonomy for the Water Content Service

Every failure the core can raise derives from WaterContentError, which
carries the HTTP status and short error label the API layer reports.
The core never imports the web framework; the API maps these exceptions
to JSON responses in a single exception handler.

Categories:
- NoMeasurementData: upstream table is empty (404)
- InvalidInput: return-loss value is not a usable number (400)
- SourceUnavailable: measurement store query failed (500)
- PersistenceError: derived-record store query or insert failed (500)
- CorsRejected: request origin is not allow-listed (403)
"""

from typing import List, Optional


class WaterContentError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoMeasurementData(WaterContentError):
    """Raised when the measurement table holds no rows."""

    status_code = 404
    error = "No measurement data found"

    def __init__(self, message: str = "Database appears to be empty"):
        super().__init__(message)


class InvalidInput(WaterContentError):
    """Raised when a return-loss reading is not a finite real number."""

    status_code = 400
    error = "Invalid input"


class SourceUnavailable(WaterContentError):
    """Raised when the upstream measurement store cannot be queried."""

    status_code = 500
    error = "Measurement source unavailable"


class PersistenceError(WaterContentError):
    """Raised when the derived-record store fails a query or an insert."""

    status_code = 500
    error = "Persistence error"


class CorsRejected(WaterContentError):
    """Raised when a request carries an origin outside the allow-list."""

    status_code = 403
    error = "CORS Error"

    def __init__(self, origin: Optional[str], allowed_origins: List[str]):
        super().__init__("Origin not allowed")
        self.origin = origin
        self.allowed_origins = list(allowed_origins)
