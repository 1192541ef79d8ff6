"""
API Module - FastAPI Backend

This module provides the REST API for the NanoVNA water content service.
It reads measurements, derives water content and stores each result once.

Key Components:
- main.py: FastAPI application factory and root endpoints
- config.py: Environment-driven settings
- models.py: Pydantic schemas for request/response validation
- database.py: Async SQLAlchemy engine, tables and session dependency
- stores.py: Measurement and derived-record stores
- routes/: API endpoint implementations

Endpoints:
- GET /api/latest-return-loss: Latest NanoVNA reading
- GET /api/calculate-water-content: Derive without saving
- POST /api/save-water-content: Derive and save once
- GET /api/realtime-water-content: Poll endpoint (derive + save once)
- GET /api/water-content-history: Saved records, newest first
- GET /api/statistics: Counts and latest values
"""

__version__ = "2.0.0"
