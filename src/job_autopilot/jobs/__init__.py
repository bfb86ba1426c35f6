"""Matching, review and application processing."""

from job_autopilot.jobs.matcher import JobMatcher, MatchRunResult
from job_autopilot.jobs.outcomes import FatalFailure, RetryableFailure, Success
from job_autopilot.jobs.queue import ApplicationQueue, Resolution
from job_autopilot.jobs.rate_limit import SlidingWindowRateLimiter
from job_autopilot.jobs.review import ReviewGate
from job_autopilot.jobs.scoring import MatchScorer, ScoringWeights, parse_salary
from job_autopilot.jobs.worker import ApplicationWorker

__all__ = [
    "ApplicationQueue",
    "ApplicationWorker",
    "FatalFailure",
    "JobMatcher",
    "MatchRunResult",
    "MatchScorer",
    "Resolution",
    "RetryableFailure",
    "ReviewGate",
    "ScoringWeights",
    "SlidingWindowRateLimiter",
    "Success",
    "parse_salary",
]
