"""Explicit construction of the pipeline components."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from job_autopilot.collaborators.apply_client import HttpApplyClient
from job_autopilot.collaborators.base import ApplyCollaborator, ApplyResult, ProfileExtractor
from job_autopilot.collaborators.notifications import (
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
    WebhookNotifier,
)
from job_autopilot.config import Settings
from job_autopilot.core.models import utcnow
from job_autopilot.jobs.matcher import JobMatcher
from job_autopilot.jobs.profiles import ProfileBuilder
from job_autopilot.jobs.queue import ApplicationQueue
from job_autopilot.jobs.rate_limit import SlidingWindowRateLimiter
from job_autopilot.jobs.review import ReviewGate
from job_autopilot.jobs.scoring import MatchScorer
from job_autopilot.jobs.worker import ApplicationWorker
from job_autopilot.storage.applications import ApplicationRecordStore
from job_autopilot.storage.database import Database
from job_autopilot.storage.listings import ListingStore
from job_autopilot.storage.matches import MatchRepository
from job_autopilot.storage.profiles import ProfileStore


class UnconfiguredApplyCollaborator:
    """Stands in when no apply service is configured; every attempt fails terminally."""

    async def apply(self, candidate_id: str, listing_id: str) -> ApplyResult:
        return ApplyResult(
            success=False,
            error="No apply service configured (set APPLY_SERVICE_URL)",
            retryable=False
        )


@dataclass
class Pipeline:
    """Every component of the matching and application pipeline."""
    database: Database
    profiles: ProfileStore
    listings: ListingStore
    matches: MatchRepository
    records: ApplicationRecordStore
    queue: ApplicationQueue
    review_gate: ReviewGate
    scorer: MatchScorer
    matcher: JobMatcher
    dispatcher: NotificationDispatcher
    worker: ApplicationWorker
    profile_builder: Optional[ProfileBuilder] = None

    async def start(self) -> None:
        await self.database.init_schema()

    async def close(self) -> None:
        await self.dispatcher.drain()
        for client in (self.worker.collaborator, self.dispatcher.notifier):
            if isinstance(client, (HttpApplyClient, WebhookNotifier)):
                await client.close()
        await self.database.dispose()


def build_pipeline(
    config: Settings,
    apply_collaborator: Optional[ApplyCollaborator] = None,
    notifier: Optional[Notifier] = None,
    extractor: Optional[ProfileExtractor] = None,
    database: Optional[Database] = None,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    clock: Callable[[], datetime] = utcnow
) -> Pipeline:
    """
    Wire the pipeline from configuration.

    Args:
        config: Settings to take limits, thresholds and URLs from
        apply_collaborator: Apply client; an HTTP client when a URL is configured
        notifier: Notification channel; webhook or log when omitted
        extractor: Resume extractor; enables the profile builder when given
        database: Database handle; created from the configured URL when omitted
        rate_limiter: Job start limiter; built from the configured window when omitted
        clock: Source of naive UTC time for the queue and matcher

    Returns:
        Constructed pipeline; call ``start()`` before use
    """
    database = database or Database(config.database_url, echo=False)

    if apply_collaborator is None:
        if config.apply_service_url:
            apply_collaborator = HttpApplyClient(
                config.apply_service_url, timeout=config.apply_timeout_seconds
            )
        else:
            apply_collaborator = UnconfiguredApplyCollaborator()

    if notifier is None:
        if config.notification_webhook_url:
            notifier = WebhookNotifier(config.notification_webhook_url)
        else:
            notifier = LoggingNotifier()

    profiles = ProfileStore(database)
    listings = ListingStore(database)
    matches = MatchRepository(database, min_score=config.match_min_score, page_size=config.page_size)
    records = ApplicationRecordStore(database)
    queue = ApplicationQueue(
        database,
        records,
        max_attempts=config.queue_max_attempts,
        backoff_base_seconds=config.queue_backoff_base_seconds,
        clock=clock
    )
    dispatcher = NotificationDispatcher(notifier, concurrency=config.notification_concurrency)
    scorer = MatchScorer()

    return Pipeline(
        database=database,
        profiles=profiles,
        listings=listings,
        matches=matches,
        records=records,
        queue=queue,
        review_gate=ReviewGate(database, matches, queue),
        scorer=scorer,
        matcher=JobMatcher(
            profiles,
            listings,
            matches,
            scorer,
            dispatcher,
            batch_limit=config.match_batch_limit,
            window_days=config.listing_window_days,
            clock=clock
        ),
        dispatcher=dispatcher,
        worker=ApplicationWorker(
            queue,
            apply_collaborator,
            dispatcher,
            rate_limiter=rate_limiter or SlidingWindowRateLimiter(
                config.rate_limit_max_starts, config.rate_limit_window_seconds
            ),
            concurrency=config.queue_concurrency,
            apply_timeout=config.apply_timeout_seconds,
            stale_grace=config.effective_stale_grace_seconds,
            sweep_interval=config.sweep_interval_seconds,
            poll_interval=config.poll_interval_seconds
        ),
        profile_builder=ProfileBuilder(extractor, profiles) if extractor is not None else None,
    )
