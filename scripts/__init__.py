"""
Scripts for IntakeAware
Utility scripts for seeding demo data
"""

from .seed_data import seed_all, create_tables

__all__ = [
    "seed_all",
    "create_tables"
]
