"""
Job Autopilot: job matching with a human review gate and a durable
application queue.

Listings are scored against candidate profiles, good matches wait for an
explicit approve/reject decision, and approved matches are applied to by a
rate-limited worker pool that retries with exponential backoff.
"""

__version__ = "0.1.0"

from job_autopilot.core.models import (
    ApplicationRecord,
    ApplyJob,
    CandidateProfile,
    JobListing,
    JobPreferences,
    Match,
)
from job_autopilot.core.pipeline import Pipeline, build_pipeline

__all__ = [
    "ApplicationRecord",
    "ApplyJob",
    "CandidateProfile",
    "JobListing",
    "JobPreferences",
    "Match",
    "Pipeline",
    "build_pipeline",
]
