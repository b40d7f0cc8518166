"""
Test Tools Package
Tests for the tools module (intake metrics, sufficiency)
"""

__all__ = [
    "test_intake_metrics",
    "test_sufficiency",
]
