"""Shared fixtures: file-backed SQLite, a controllable clock and fake collaborators."""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest
import pytest_asyncio

from job_autopilot.collaborators.base import ApplyResult
from job_autopilot.collaborators.notifications import NotificationDispatcher
from job_autopilot.core.models import (
    CandidateProfile,
    EmploymentType,
    JobListing,
    JobPreferences,
    MatchReason,
    Notification,
    FactorKind,
    RemotePreference,
    RemoteType,
    ScoreResult,
    utcnow,
)
from job_autopilot.jobs.queue import ApplicationQueue
from job_autopilot.storage.applications import ApplicationRecordStore
from job_autopilot.storage.database import Database
from job_autopilot.storage.listings import ListingStore
from job_autopilot.storage.matches import MatchRepository
from job_autopilot.storage.profiles import ProfileStore


class FakeClock:
    """Naive UTC clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ScriptedApplyCollaborator:
    """Returns queued results in order, repeating the last one."""

    def __init__(self, *results):
        self.results = list(results) or [ApplyResult(success=True, application_ref="ref-1")]
        self.calls: List[tuple] = []

    async def apply(self, candidate_id: str, listing_id: str) -> ApplyResult:
        self.calls.append((candidate_id, listing_id))
        result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class RecordingNotifier:
    """Keeps every delivered notification."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Notification] = []

    async def notify(self, notification: Notification) -> None:
        if self.fail:
            raise RuntimeError("notification channel down")
        self.sent.append(notification)


def make_listing(external_id: str = "ext-1", **overrides) -> JobListing:
    fields = dict(
        source="linkedin",
        external_id=external_id,
        title="Senior Python Developer",
        company="Acme",
        location="Remote",
        remote_type=RemoteType.REMOTE,
        employment_type=EmploymentType.FULL_TIME,
        description="We use Python, Django and PostgreSQL on AWS.",
        salary_range="$120,000 - $140,000",
        application_url="https://jobs.example.com/1",
    )
    fields.update(overrides)
    return JobListing(**fields)


def make_profile(candidate_id: str = "cand-1", **overrides) -> CandidateProfile:
    fields = dict(
        candidate_id=candidate_id,
        skills={"Python", "Django", "PostgreSQL", "AWS"},
        preferences=JobPreferences(
            desired_titles={"Python Developer"},
            remote_preference=RemotePreference.REMOTE,
            min_salary=100000,
            employment_types={EmploymentType.FULL_TIME},
        ),
    )
    fields.update(overrides)
    return CandidateProfile(**fields)


def make_score(total: int) -> ScoreResult:
    return ScoreResult(
        total=total,
        reasons=[MatchReason(kind=FactorKind.SKILL, description="Skills match: python", contribution=float(total))]
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 12, 0, 0))


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'autopilot.db'}")
    await db.init_schema()
    yield db
    await db.dispose()


@pytest.fixture
def profiles(database):
    return ProfileStore(database)


@pytest.fixture
def listings(database):
    return ListingStore(database)


@pytest.fixture
def matches(database):
    return MatchRepository(database, min_score=60, page_size=50)


@pytest.fixture
def records(database):
    return ApplicationRecordStore(database)


@pytest.fixture
def queue(database, records, clock):
    return ApplicationQueue(database, records, max_attempts=3, backoff_base_seconds=5.0, clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier, concurrency=2)


@pytest_asyncio.fixture
async def stored_match(listings, matches):
    """One pending match on a stored listing."""
    listing = await listings.upsert(make_listing())
    match, _ = await matches.record_match("cand-1", listing.id, make_score(85))
    return match
