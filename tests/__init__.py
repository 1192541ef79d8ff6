"""
Test Suite for the NanoVNA Water Content Service

This module contains tests for:
- Water content formula (test_formula.py)
- Derive coordinator workflow (test_coordinator.py)
- Statistics aggregation (test_statistics.py)
- SQLAlchemy stores (test_stores.py)
- API endpoints (test_api.py)

Run tests with:
    pytest tests/ -v
    pytest tests/ --cov=core --cov=api
"""

import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
