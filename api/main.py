"""
NanoVNA Water Content - FastAPI Application

This is the main entry point for the FastAPI backend.
It combines all route modules and provides system-wide endpoints.

Features:
- Latest NanoVNA return-loss readings
- Water content derivation with save-once semantics
- Water content history and statistics
- Interactive API documentation (Swagger/OpenAPI)

Access Points:
- API Root: http://localhost:3000
- Swagger Docs: http://localhost:3000/docs
- ReDoc: http://localhost:3000/redoc
- OpenAPI JSON: http://localhost:3000/openapi.json
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import API_VERSION, Settings, get_settings
from api.database import Database, check_database_health, init_database
from api.routes import measurements_router, statistics_router, water_content_router
from api.models import CorsErrorResponse, ErrorResponse, SystemHealth
from core.coordinator import SingleFlightGate
from core.errors import CorsRejected, WaterContentError
from core.formula import FORMULA

logger = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /api/latest-return-loss",
    "GET /api/calculate-water-content",
    "GET /api/realtime-water-content",
    "GET /api/water-content-history",
    "GET /api/statistics",
    "GET /api/measurements/recent",
    "GET /api/measurements/{id}",
    "POST /api/save-water-content",
]

# Error bodies documented on every /api route
ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Latest measurement has an unusable return loss"},
    403: {"model": CorsErrorResponse, "description": "Origin not allowed"},
    404: {"model": ErrorResponse, "description": "No measurement data"},
    500: {"model": ErrorResponse, "description": "Database failure"},
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    """Build the uniform error body."""
    content: Dict[str, Any] = {"error": error, "message": message, "timestamp": _timestamp()}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def ensure_origin_allowed(origin: Optional[str], allowed_origins: Iterable[str]) -> None:
    """
    Reject browser origins outside the allow-list.

    Requests without an Origin header (curl, server-to-server) pass.

    Raises:
        CorsRejected: origin present and not allowed
    """
    allowed = list(allowed_origins)
    if not origin or "*" in allowed or origin in allowed:
        return
    raise CorsRejected(origin, allowed)


# =========================================
# Application Lifespan
# =========================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Opens the database on startup (unless one was injected) and disposes
    it on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info("🚀 Starting NanoVNA Water Content API...")

    owns_database = app.state.database is None
    if owns_database:
        app.state.database = Database(settings.database_url, echo=settings.sql_echo)

    try:
        await init_database(app.state.database, create_missing=settings.auto_create_tables)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"❌ Startup error: {e}")
        # Don't prevent startup - database might come up later

    logger.info(f"🧮 Water content formula: {FORMULA}")
    if settings.single_flight:
        logger.info("🔒 Single-flight derive gate enabled")
    logger.info("✅ NanoVNA Water Content API started successfully")

    yield  # Application runs here

    logger.info("👋 Shutting down NanoVNA Water Content API...")
    if owns_database:
        await app.state.database.dispose()
        app.state.database = None


# =========================================
# FastAPI Application
# =========================================

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Runtime configuration (read from the environment if None)
        database: Pre-built database to use instead of one built from settings
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="NanoVNA Water Content API",
        description="""
## Water content from NanoVNA return-loss measurements

Reads the latest NanoVNA sweep, derives water content with

`kadar_air = 0.0054 * return_loss^2 - 0.0238 * return_loss - 12.081`

and saves each measurement's result exactly once.

### Quick Start

1. **Check API health**: `GET /health`
2. **Latest reading**: `GET /api/latest-return-loss`
3. **Poll water content**: `GET /api/realtime-water-content`
4. **History**: `GET /api/water-content-history?limit=10`
        """,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = database
    app.state.derive_gate = SingleFlightGate() if settings.single_flight else None

    # =========================================
    # Middleware
    # =========================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Registered after CORSMiddleware so it runs first and rejects with 403.
    @app.middleware("http")
    async def origin_guard(request: Request, call_next):
        try:
            ensure_origin_allowed(request.headers.get("origin"), settings.allowed_origins)
        except CorsRejected as exc:
            logger.warning(f"Rejected request from origin {exc.origin}")
            return error_response(
                exc.status_code,
                exc.error,
                exc.message,
                allowed_origins=exc.allowed_origins,
            )
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info(f"{request.method} {request.url.path} - {client}")
        if request.method == "POST" and logger.isEnabledFor(logging.DEBUG):
            body = await request.body()
            logger.debug(f"Request body: {body.decode(errors='replace') or '<empty>'}")
        return await call_next(request)

    # =========================================
    # Exception Handlers
    # =========================================

    @app.exception_handler(WaterContentError)
    async def water_content_error_handler(request: Request, exc: WaterContentError):
        """Map core errors to their status codes."""
        if exc.status_code >= 500:
            logger.error(f"{exc.error}: {exc.message}", exc_info=exc)
        return error_response(exc.status_code, exc.error, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with consistent format; list endpoints on 404."""
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_response(
                exc.status_code,
                "Endpoint not found",
                f"{request.method} {request.url.path} is not a valid endpoint",
                available_endpoints=AVAILABLE_ENDPOINTS,
            )
        return error_response(exc.status_code, "HTTP Error", str(exc.detail))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions without leaking tracebacks."""
        logger.error(f"🚨 Unhandled exception: {exc}", exc_info=exc)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            type(exc).__name__ if settings.debug else "Internal Server Error",
            str(exc) or "Something went wrong",
        )

    # =========================================
    # Include Routers
    # =========================================

    app.include_router(measurements_router, prefix="/api", responses=ERROR_RESPONSES)
    app.include_router(water_content_router, prefix="/api", responses=ERROR_RESPONSES)
    app.include_router(statistics_router, prefix="/api", responses=ERROR_RESPONSES)

    # =========================================
    # Root Endpoints
    # =========================================

    @app.get("/", tags=["System"], summary="API Root")
    async def root():
        """API root endpoint."""
        return {
            "name": "NanoVNA Water Content API",
            "version": API_VERSION,
            "documentation": "/docs",
            "health_check": "/health",
            "endpoints": AVAILABLE_ENDPOINTS,
        }

    @app.get(
        "/health",
        response_model=SystemHealth,
        tags=["System"],
        summary="System Health Check",
        description="Liveness of the API process; does not touch the database"
    )
    async def health_check():
        return SystemHealth(
            status="OK",
            message="NanoVNA Water Content Backend is running",
            timestamp=_timestamp(),
            version=API_VERSION,
        )

    @app.get(
        "/ready",
        tags=["System"],
        summary="Readiness Check",
        description="Check if the API can reach its database"
    )
    async def readiness_check(request: Request):
        """Kubernetes-style readiness probe."""
        db_health = await check_database_health(request.app.state.database)

        if db_health["status"] != "healthy":
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Database not ready"
            )

        return {"ready": True, "database": db_health}

    @app.get("/live", tags=["System"], summary="Liveness Check")
    async def liveness_check():
        """Kubernetes-style liveness probe."""
        return {"alive": True}

    return app


settings = get_settings()
configure_logging(settings.log_level)
app = create_app(settings)


# =========================================
# Run with Uvicorn (for development)
# =========================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower()
    )
