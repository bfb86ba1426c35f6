"""Worker pool that executes apply jobs."""

import asyncio
from typing import List, Optional

from job_autopilot.collaborators.base import ApplyCollaborator
from job_autopilot.collaborators.notifications import NotificationDispatcher
from job_autopilot.core.errors import PipelineError, TransientCollaboratorFailure
from job_autopilot.core.models import ApplyJob, JobStatus, Notification, NotificationKind
from job_autopilot.jobs.outcomes import AttemptOutcome, FatalFailure, RetryableFailure, Success
from job_autopilot.jobs.queue import ApplicationQueue, Resolution
from job_autopilot.jobs.rate_limit import SlidingWindowRateLimiter
from job_autopilot.utils.logging import get_logger, job_context

logger = get_logger(__name__)


class ApplicationWorker:
    """Pulls queued apply jobs and runs them against the apply collaborator."""

    def __init__(
        self,
        queue: ApplicationQueue,
        collaborator: ApplyCollaborator,
        dispatcher: NotificationDispatcher,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        concurrency: int = 5,
        apply_timeout: float = 30.0,
        stale_grace: Optional[float] = None,
        sweep_interval: float = 30.0,
        poll_interval: float = 1.0
    ):
        """
        Initialize the worker pool.

        Args:
            queue: Durable job queue
            collaborator: Performs the actual application
            dispatcher: Notification pool for terminal outcomes
            rate_limiter: Global cap on job starts
            concurrency: Number of concurrent worker loops
            apply_timeout: Seconds before an attempt is abandoned
            stale_grace: Processing age after which a job is reclaimed
            sweep_interval: Seconds between staleness sweeps
            poll_interval: Idle wait between polls of an empty queue
        """
        self.logger = logger.bind(component="application_worker")
        self.queue = queue
        self.collaborator = collaborator
        self.dispatcher = dispatcher
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self.concurrency = concurrency
        self.apply_timeout = apply_timeout
        self.stale_grace = stale_grace if stale_grace is not None else apply_timeout * 2
        self.sweep_interval = sweep_interval
        self.poll_interval = poll_interval

        self._stopping: Optional[asyncio.Event] = None

    async def process_next(self) -> Optional[Resolution]:
        """
        Claim one job, attempt it and persist the outcome.

        Returns:
            What happened to the job, or None when nothing was eligible
        """
        await self.rate_limiter.acquire()

        try:
            job = await self.queue.claim_next()
        except PipelineError:
            self.rate_limiter.refund()
            raise

        if job is None:
            self.rate_limiter.refund()
            return None

        with job_context(job.id, job.candidate_id, job.listing_id):
            outcome = await self.attempt(job)
            resolution = await self.queue.complete(job, outcome)

        if resolution.applied:
            self._notify(resolution)
        return resolution

    async def attempt(self, job: ApplyJob) -> AttemptOutcome:
        """Run the collaborator once for a claimed job, bounded by the timeout."""
        self.logger.info("Applying", job_id=job.id, attempt=job.attempts + 1)

        try:
            result = await asyncio.wait_for(
                self.collaborator.apply(job.candidate_id, job.listing_id),
                timeout=self.apply_timeout
            )
        except asyncio.TimeoutError:
            return RetryableFailure(f"Apply timed out after {self.apply_timeout:g}s")
        except TransientCollaboratorFailure as e:
            return RetryableFailure(e.message)
        except Exception as e:
            self.logger.error(
                "Apply collaborator raised",
                job_id=job.id,
                error=str(e),
                error_type=type(e).__name__
            )
            return RetryableFailure(f"{type(e).__name__}: {e}")

        if result.success:
            return Success(application_ref=result.application_ref)
        if result.retryable:
            return RetryableFailure(result.error or "Apply failed")
        return FatalFailure(result.error or "Apply rejected")

    async def sweep(self) -> List[Resolution]:
        """Reclaim jobs abandoned in processing and notify on exhausted ones."""
        resolutions = await self.queue.sweep_stale(self.stale_grace)
        for resolution in resolutions:
            self._notify(resolution)
        return resolutions

    async def run(self) -> None:
        """Run the worker loops and the sweeper until stop() is called."""
        self._stopping = asyncio.Event()

        self.logger.info(
            "Starting application workers",
            concurrency=self.concurrency,
            rate_limit=f"{self.rate_limiter.max_starts}/{self.rate_limiter.window_seconds:g}s",
            apply_timeout=self.apply_timeout
        )

        await self.sweep()

        tasks = [
            asyncio.create_task(self._worker_loop(index), name=f"apply-worker-{index}")
            for index in range(self.concurrency)
        ]
        tasks.append(asyncio.create_task(self._sweep_loop(), name="apply-sweeper"))

        try:
            await self._stopping.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.dispatcher.drain()
            self.logger.info("Application workers stopped")

    def stop(self) -> None:
        if self._stopping is not None:
            self._stopping.set()

    async def _worker_loop(self, index: int) -> None:
        log = self.logger.bind(worker=index)

        while not self._stopping.is_set():
            try:
                resolution = await self.process_next()
            except PipelineError as e:
                log.error("Worker iteration failed", error=e.message, error_type=type(e).__name__)
                resolution = None
            except Exception as e:
                log.error("Unexpected worker error", error=str(e), error_type=type(e).__name__)
                resolution = None

            if resolution is None:
                await self._idle(self.poll_interval)

    async def _sweep_loop(self) -> None:
        while not self._stopping.is_set():
            await self._idle(self.sweep_interval)
            if self._stopping.is_set():
                return
            try:
                await self.sweep()
            except PipelineError as e:
                self.logger.error("Staleness sweep failed", error=e.message)

    async def _idle(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _notify(self, resolution: Resolution) -> None:
        job = resolution.job

        if job.status == JobStatus.SUCCEEDED:
            self.dispatcher.submit(Notification(
                kind=NotificationKind.APPLICATION_SUBMITTED,
                candidate_id=job.candidate_id,
                title="Application Submitted",
                message="Your application was successfully submitted",
                data={
                    "job_id": job.id,
                    "listing_id": job.listing_id,
                    "application_id": resolution.record.id if resolution.record else None,
                    "confirmation_ref": resolution.record.confirmation_ref if resolution.record else None,
                }
            ))
        elif job.status == JobStatus.FAILED:
            self.dispatcher.submit(Notification(
                kind=NotificationKind.APPLY_EXHAUSTED,
                candidate_id=job.candidate_id,
                title="Application Failed",
                message=f"We could not submit your application after {job.attempts} attempt(s)",
                data={
                    "job_id": job.id,
                    "listing_id": job.listing_id,
                    "attempts": job.attempts,
                    "last_error": job.last_error,
                }
            ))
