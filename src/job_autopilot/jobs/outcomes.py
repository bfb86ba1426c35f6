"""Attempt outcomes and the retry decision taken on them."""

from dataclasses import dataclass
from typing import Optional, Union

from job_autopilot.core.models import ApplyJob, JobStatus


@dataclass(frozen=True)
class Success:
    """The collaborator submitted the application."""
    application_ref: Optional[str] = None


@dataclass(frozen=True)
class RetryableFailure:
    """The attempt failed but a later attempt may succeed."""
    error: str


@dataclass(frozen=True)
class FatalFailure:
    """The collaborator rejected the application outright."""
    error: str


AttemptOutcome = Union[Success, RetryableFailure, FatalFailure]


@dataclass(frozen=True)
class Transition:
    """Next persisted state for a job after an attempt."""
    status: JobStatus
    attempts: int
    retry_delay: Optional[float] = None
    error: Optional[str] = None


def backoff_delay(attempts: int, base_seconds: float) -> float:
    """Delay before the next attempt: base, then doubling per failed attempt."""
    return base_seconds * (2 ** max(0, attempts - 1))


def next_transition(job: ApplyJob, outcome: AttemptOutcome, backoff_base: float) -> Transition:
    """
    Decide where a job goes after one attempt.
    
    Args:
        job: Job as claimed, before the attempt was counted
        outcome: Result of the attempt
        backoff_base: Base retry delay in seconds
        
    Returns:
        Status, attempt count, retry delay and error to persist
    """
    attempts = job.attempts + 1
    
    if isinstance(outcome, Success):
        return Transition(status=JobStatus.SUCCEEDED, attempts=attempts)
    
    if isinstance(outcome, FatalFailure):
        return Transition(status=JobStatus.FAILED, attempts=attempts, error=outcome.error)
    
    if attempts >= job.max_attempts:
        return Transition(status=JobStatus.FAILED, attempts=attempts, error=outcome.error)
    
    return Transition(
        status=JobStatus.QUEUED,
        attempts=attempts,
        retry_delay=backoff_delay(attempts, backoff_base),
        error=outcome.error
    )
