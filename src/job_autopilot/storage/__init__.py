"""Persistence for profiles, listings, matches, apply jobs and application records."""

from job_autopilot.storage.database import Database, insert_ignoring_conflicts
from job_autopilot.storage.tables import Base

__all__ = [
    "Base",
    "Database",
    "insert_ignoring_conflicts",
]
