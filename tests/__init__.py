"""
IntakeAware Test Suite
======================

This package contains all tests for the IntakeAware medication intake system.

Test Structure:
- test_tools/: Intake metrics and sufficiency gates
- test_services/: Pattern analysis and snapshot orchestration
- test_actions/: Background snapshot refresh
- test_api/: API endpoint tests for FastAPI routes
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_api/

    # Run only marked tests
    pytest -m "unit"
    pytest -m "database"
"""
