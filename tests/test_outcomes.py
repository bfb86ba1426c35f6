"""Property-based tests for attempt outcomes and retry transitions."""

from datetime import datetime

import pytest
from hypothesis import given, strategies as st

from job_autopilot.core.models import ApplyJob, JobStatus
from job_autopilot.jobs.outcomes import (
    FatalFailure,
    RetryableFailure,
    Success,
    backoff_delay,
    next_transition,
)


@st.composite
def claimed_job_strategy(draw):
    """Generate jobs as a worker sees them after claiming."""
    max_attempts = draw(st.integers(min_value=1, max_value=6))
    now = datetime(2024, 3, 1, 12, 0, 0)
    return ApplyJob(
        id="job-1",
        candidate_id="cand-1",
        listing_id="listing-1",
        match_id="match-1",
        status=JobStatus.PROCESSING,
        attempts=draw(st.integers(min_value=0, max_value=max_attempts - 1)),
        max_attempts=max_attempts,
        claim_token="token",
        enqueued_at=now,
        available_at=now,
        updated_at=now
    )


outcome_strategy = st.one_of(
    st.builds(Success, application_ref=st.one_of(st.none(), st.text(max_size=10))),
    st.builds(RetryableFailure, error=st.text(min_size=1, max_size=20)),
    st.builds(FatalFailure, error=st.text(min_size=1, max_size=20)),
)


class TestNextTransition:
    """Where a job goes after one attempt."""

    @given(job=claimed_job_strategy(), outcome=outcome_strategy)
    def test_attempt_is_always_counted(self, job, outcome):
        transition = next_transition(job, outcome, backoff_base=5.0)

        assert transition.attempts == job.attempts + 1
        assert transition.attempts <= job.max_attempts

    @given(job=claimed_job_strategy(), outcome=outcome_strategy)
    def test_only_retryable_failures_with_attempts_left_requeue(self, job, outcome):
        transition = next_transition(job, outcome, backoff_base=5.0)

        if transition.status == JobStatus.QUEUED:
            assert isinstance(outcome, RetryableFailure)
            assert transition.attempts < job.max_attempts
            assert transition.retry_delay == backoff_delay(transition.attempts, 5.0)
        else:
            assert transition.status.is_terminal
            assert transition.retry_delay is None

    @given(job=claimed_job_strategy(), error=st.text(min_size=1, max_size=20))
    def test_last_attempt_failure_is_terminal(self, job, error):
        last = job.model_copy(update={"attempts": job.max_attempts - 1})

        transition = next_transition(last, RetryableFailure(error), backoff_base=5.0)

        assert transition.status == JobStatus.FAILED
        assert transition.error == error

    def test_fatal_failure_skips_retries(self):
        now = datetime(2024, 3, 1)
        job = ApplyJob(
            id="j", candidate_id="c", listing_id="l", match_id="m",
            status=JobStatus.PROCESSING, max_attempts=3,
            enqueued_at=now, available_at=now, updated_at=now
        )

        transition = next_transition(job, FatalFailure("listing closed"), backoff_base=5.0)

        assert transition.status == JobStatus.FAILED
        assert transition.attempts == 1
        assert transition.error == "listing closed"


class TestBackoffDelay:
    """Exponential retry delays."""

    @pytest.mark.parametrize("attempts,expected", [(1, 5.0), (2, 10.0), (3, 20.0), (4, 40.0)])
    def test_doubles_per_attempt(self, attempts, expected):
        assert backoff_delay(attempts, 5.0) == expected

    @given(st.integers(min_value=1, max_value=20), st.floats(min_value=0.1, max_value=60))
    def test_monotonic(self, attempts, base):
        assert backoff_delay(attempts + 1, base) == 2 * backoff_delay(attempts, base)
