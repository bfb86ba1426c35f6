"""Durable application queue backed by the apply_jobs table."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from job_autopilot.core.errors import NotFound
from job_autopilot.core.models import ApplicationRecord, ApplyJob, JobStatus, utcnow
from job_autopilot.jobs.outcomes import (
    AttemptOutcome,
    RetryableFailure,
    Success,
    Transition,
    next_transition,
)
from job_autopilot.storage.applications import ApplicationRecordStore
from job_autopilot.storage.database import Database, insert_ignoring_conflicts
from job_autopilot.storage.tables import ApplyJobRow
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)

_TERMINAL = (JobStatus.SUCCEEDED.value, JobStatus.FAILED.value)


@dataclass
class Resolution:
    """What happened to a job after an attempt was reported."""
    job: ApplyJob
    outcome: AttemptOutcome
    transition: Transition
    applied: bool
    record: Optional[ApplicationRecord] = None


class ApplicationQueue:
    """
    Persisted apply jobs moving queued -> processing -> succeeded | queued | failed.

    Every state change is a compare-and-set on the current status, so a job
    is claimed by at most one worker and a stale worker cannot overwrite a
    newer outcome.
    """

    def __init__(
        self,
        database: Database,
        records: ApplicationRecordStore,
        max_attempts: int = 3,
        backoff_base_seconds: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
        claim_retries: int = 5
    ):
        self.database = database
        self.records = records
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.clock = clock
        self.claim_retries = claim_retries
        self.logger = logger.bind(component="application_queue")

    async def enqueue(
        self,
        candidate_id: str,
        listing_id: str,
        match_id: str,
        priority: int = 0,
        session: Optional[AsyncSession] = None
    ) -> str:
        """
        Create the apply job for a match.

        A match gets at most one job; enqueuing it again returns the
        existing job id.

        Args:
            candidate_id: Candidate to apply for
            listing_id: Listing to apply to
            match_id: Approved match the job comes from
            priority: Higher values are claimed first
            session: Transaction to join, e.g. the review that approved the match

        Returns:
            Job id
        """
        if session is None:
            async with self.database.session() as own_session:
                return await self.enqueue(candidate_id, listing_id, match_id, priority, own_session)

        now = self.clock()
        job_id = str(uuid.uuid4())
        inserted = await insert_ignoring_conflicts(
            session,
            ApplyJobRow,
            [{
                "id": job_id,
                "candidate_id": candidate_id,
                "listing_id": listing_id,
                "match_id": match_id,
                "status": JobStatus.QUEUED.value,
                "attempts": 0,
                "max_attempts": self.max_attempts,
                "priority": priority,
                "enqueued_at": now,
                "available_at": now,
                "updated_at": now,
            }],
            ("match_id",)
        )

        if not inserted:
            result = await session.execute(
                select(ApplyJobRow.id).where(ApplyJobRow.match_id == match_id)
            )
            existing = result.scalar_one()
            self.logger.info("Match already enqueued", match_id=match_id, job_id=existing)
            return existing

        self.logger.info(
            "Apply job enqueued",
            job_id=job_id,
            candidate_id=candidate_id,
            listing_id=listing_id,
            match_id=match_id
        )
        return job_id

    async def claim_next(self) -> Optional[ApplyJob]:
        """
        Atomically move the next eligible queued job to processing.

        Returns:
            The claimed job, or None when nothing is eligible
        """
        for _ in range(self.claim_retries):
            now = self.clock()
            token = str(uuid.uuid4())

            candidate = aliased(ApplyJobRow)
            next_id = (
                select(candidate.id)
                .where(
                    candidate.status == JobStatus.QUEUED.value,
                    candidate.available_at <= now
                )
                .order_by(
                    candidate.priority.desc(),
                    candidate.available_at,
                    candidate.enqueued_at
                )
                .limit(1)
                .scalar_subquery()
            )

            async with self.database.session() as session:
                result = await session.execute(
                    update(ApplyJobRow)
                    .where(
                        ApplyJobRow.id == next_id,
                        ApplyJobRow.status == JobStatus.QUEUED.value
                    )
                    .values(
                        status=JobStatus.PROCESSING.value,
                        claim_token=token,
                        claimed_at=now,
                        updated_at=now
                    )
                    .execution_options(synchronize_session=False)
                )

                if result.rowcount:
                    claimed = await session.execute(
                        select(ApplyJobRow).where(ApplyJobRow.claim_token == token)
                    )
                    job = ApplyJob.model_validate(claimed.scalar_one())
                    self.logger.info(
                        "Apply job claimed",
                        job_id=job.id,
                        attempt=job.attempts + 1,
                        max_attempts=job.max_attempts
                    )
                    return job

                if not await self._has_eligible(session, now):
                    return None

        self.logger.debug("Claim contention, giving up for now", retries=self.claim_retries)
        return None

    async def complete(self, job: ApplyJob, outcome: AttemptOutcome) -> Resolution:
        """
        Persist the result of an attempt on a claimed job.

        Success is written together with the application record in one
        transaction. A success report wins over a concurrent reclaim as long
        as the job is not terminal; failure reports only apply while the
        reporting worker still holds the claim.
        """
        transition = next_transition(job, outcome, self.backoff_base_seconds)
        now = self.clock()

        async with self.database.session() as session:
            record = None

            if isinstance(outcome, Success):
                result = await session.execute(
                    update(ApplyJobRow)
                    .where(ApplyJobRow.id == job.id, ApplyJobRow.status.not_in(_TERMINAL))
                    .values(
                        status=JobStatus.SUCCEEDED.value,
                        # attempts never decrease
                        attempts=case(
                            (ApplyJobRow.attempts > transition.attempts, ApplyJobRow.attempts),
                            else_=transition.attempts
                        ),
                        last_error=None,
                        claim_token=None,
                        completed_at=now,
                        updated_at=now
                    )
                    .execution_options(synchronize_session=False)
                )
                applied = bool(result.rowcount)
                if applied:
                    record = await self.records.add(session, job, outcome.application_ref)
            else:
                applied = await self._apply_failure(session, job, transition, now)

            current = await self._load(session, job.id)

        if applied:
            self._log_transition(current, transition)
        else:
            self.logger.warning(
                "Stale attempt result discarded",
                job_id=job.id,
                reported=transition.status.value,
                current_status=current.status.value
            )

        return Resolution(
            job=current,
            outcome=outcome,
            transition=transition,
            applied=applied,
            record=record
        )

    async def sweep_stale(self, grace_seconds: float) -> List[Resolution]:
        """
        Reclaim jobs stuck in processing for longer than the grace period.

        Each counts as a failed attempt: the job is requeued with backoff
        or failed when it has no attempts left.
        """
        cutoff = self.clock() - timedelta(seconds=grace_seconds)

        async with self.database.session() as session:
            result = await session.execute(
                select(ApplyJobRow).where(
                    ApplyJobRow.status == JobStatus.PROCESSING.value,
                    ApplyJobRow.claimed_at < cutoff
                )
            )
            stuck = [ApplyJob.model_validate(row) for row in result.scalars()]

        resolutions = []
        for job in stuck:
            outcome = RetryableFailure(
                f"Attempt abandoned: no result within {grace_seconds:g}s"
            )
            resolution = await self.complete(job, outcome)
            if resolution.applied:
                resolutions.append(resolution)

        if resolutions:
            self.logger.warning("Reclaimed stale jobs", count=len(resolutions))
        return resolutions

    async def get_job_status(self, job_id: str) -> ApplyJob:
        async with self.database.session() as session:
            return await self._load(session, job_id)

    async def get_queue_depth(self) -> int:
        """Number of jobs not yet in a terminal state."""
        async with self.database.session() as session:
            result = await session.execute(
                select(func.count()).select_from(ApplyJobRow).where(ApplyJobRow.status.not_in(_TERMINAL))
            )
            return result.scalar_one()

    async def status_counts(self) -> Dict[str, int]:
        async with self.database.session() as session:
            result = await session.execute(
                select(ApplyJobRow.status, func.count()).group_by(ApplyJobRow.status)
            )
            counts = {status.value: 0 for status in JobStatus}
            counts.update({status: count for status, count in result.all()})
            return counts

    async def _apply_failure(
        self,
        session: AsyncSession,
        job: ApplyJob,
        transition: Transition,
        now: datetime
    ) -> bool:
        values = {
            "status": transition.status.value,
            "attempts": transition.attempts,
            "last_error": transition.error,
            "claim_token": None,
            "updated_at": now,
        }
        if transition.status == JobStatus.QUEUED:
            values["available_at"] = now + timedelta(seconds=transition.retry_delay or 0)
            values["claimed_at"] = None
        else:
            values["completed_at"] = now

        result = await session.execute(
            update(ApplyJobRow)
            .where(
                ApplyJobRow.id == job.id,
                ApplyJobRow.status == JobStatus.PROCESSING.value,
                ApplyJobRow.claim_token == job.claim_token
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def _has_eligible(self, session: AsyncSession, now: datetime) -> bool:
        result = await session.execute(
            select(func.count())
            .select_from(ApplyJobRow)
            .where(
                ApplyJobRow.status == JobStatus.QUEUED.value,
                ApplyJobRow.available_at <= now
            )
        )
        return result.scalar_one() > 0

    async def _load(self, session: AsyncSession, job_id: str) -> ApplyJob:
        result = await session.execute(
            select(ApplyJobRow)
            .where(ApplyJobRow.id == job_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound(f"Apply job {job_id} not found", {"job_id": job_id})
        return ApplyJob.model_validate(row)

    def _log_transition(self, job: ApplyJob, transition: Transition) -> None:
        if transition.status == JobStatus.SUCCEEDED:
            self.logger.info("Apply job succeeded", job_id=job.id, attempts=job.attempts)
        elif transition.status == JobStatus.QUEUED:
            self.logger.warning(
                "Apply attempt failed, retry scheduled",
                job_id=job.id,
                attempts=job.attempts,
                max_attempts=job.max_attempts,
                retry_in_seconds=transition.retry_delay,
                error=transition.error
            )
        else:
            self.logger.error(
                "Apply job failed permanently",
                job_id=job.id,
                attempts=job.attempts,
                error=transition.error
            )
