"""Tests for the match repository and the review gate."""

import asyncio

import pytest
from sqlalchemy import func, select

from job_autopilot.core.errors import AlreadyReviewed, NotFound, ValidationError
from job_autopilot.core.models import ReviewState
from job_autopilot.jobs.review import ReviewGate
from job_autopilot.storage.tables import ApplyJobRow, MatchRow

from conftest import make_listing, make_score


async def _count(database, model) -> int:
    async with database.session() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


class TestRecordMatch:
    """Insert-if-absent on the (candidate, listing) pair."""

    @pytest.mark.asyncio
    async def test_duplicate_record_is_noop(self, database, listings, matches):
        listing = await listings.upsert(make_listing())

        first, created_first = await matches.record_match("cand-1", listing.id, make_score(80))
        second, created_second = await matches.record_match("cand-1", listing.id, make_score(95))

        assert created_first is True
        assert created_second is False
        assert second.id == first.id
        assert second.score == 80
        assert await _count(database, MatchRow) == 1

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_store_one_row(self, database, listings, matches):
        listing = await listings.upsert(make_listing())

        results = await asyncio.gather(*[
            matches.record_match("cand-1", listing.id, make_score(70 + i)) for i in range(5)
        ])

        assert sum(1 for _, created in results if created) == 1
        assert len({match.id for match, _ in results}) == 1
        assert await _count(database, MatchRow) == 1

    @pytest.mark.asyncio
    async def test_below_threshold_is_rejected(self, database, listings, matches):
        listing = await listings.upsert(make_listing())

        with pytest.raises(ValidationError):
            await matches.record_match("cand-1", listing.id, make_score(59))

        assert await _count(database, MatchRow) == 0

    @pytest.mark.asyncio
    async def test_reasons_round_trip_as_tagged_factors(self, listings, matches):
        listing = await listings.upsert(make_listing())

        match, _ = await matches.record_match("cand-1", listing.id, make_score(75))
        stored = await matches.get("cand-1", match.id)

        assert stored.reasons == match.reasons
        assert stored.reasons[0].kind.value == "skill"


class TestListMatches:
    """Ordering and paging of pending and reviewed matches."""

    @pytest.mark.asyncio
    async def test_pending_ordered_by_score_then_recency(self, listings, matches):
        ids = {}
        for index, score in enumerate([70, 90, 70, 65]):
            listing = await listings.upsert(make_listing(external_id=f"ext-{index}"))
            match, _ = await matches.record_match("cand-1", listing.id, make_score(score))
            ids[index] = match.id

        pending = await matches.list_pending("cand-1")

        assert [m.score for m in pending] == [90, 70, 70, 65]
        assert pending[0].id == ids[1]
        assert pending[1].created_at >= pending[2].created_at

    @pytest.mark.asyncio
    async def test_page_size_is_bounded(self, database, listings):
        from job_autopilot.storage.matches import MatchRepository

        small = MatchRepository(database, min_score=60, page_size=2)
        for index in range(4):
            listing = await listings.upsert(make_listing(external_id=f"ext-{index}"))
            await small.record_match("cand-1", listing.id, make_score(80))

        assert len(await small.list_pending("cand-1")) == 2
        assert len(await small.list_pending("cand-1", limit=100)) == 2
        assert len(await small.list_pending("cand-1", limit=2, offset=3)) == 1

    @pytest.mark.asyncio
    async def test_other_candidates_are_not_listed(self, listings, matches):
        listing = await listings.upsert(make_listing())
        await matches.record_match("cand-2", listing.id, make_score(80))

        assert await matches.list_pending("cand-1") == []

    @pytest.mark.asyncio
    async def test_matched_listing_ids_and_counts(self, stored_match, matches):
        assert await matches.matched_listing_ids("cand-1") == {stored_match.listing_id}
        assert await matches.count_by_state("cand-1") == {"pending": 1, "approved": 0, "rejected": 0}


class TestReviewGate:
    """Approve/reject state machine and enqueueing."""

    @pytest.fixture
    def gate(self, database, matches, queue):
        return ReviewGate(database, matches, queue)

    @pytest.mark.asyncio
    async def test_approve_enqueues_exactly_one_job(self, gate, stored_match, database, queue):
        outcome = await gate.review("cand-1", stored_match.id, True)

        assert outcome.match.review_state == ReviewState.APPROVED
        assert outcome.match.reviewed_at is not None
        assert outcome.job_id is not None
        assert await _count(database, ApplyJobRow) == 1

        job = await queue.get_job_status(outcome.job_id)
        assert job.match_id == stored_match.id
        assert job.listing_id == stored_match.listing_id
        assert job.attempts == 0

    @pytest.mark.asyncio
    async def test_reject_enqueues_nothing(self, gate, stored_match, database):
        outcome = await gate.review("cand-1", stored_match.id, False)

        assert outcome.match.review_state == ReviewState.REJECTED
        assert outcome.job_id is None
        assert await _count(database, ApplyJobRow) == 0

    @pytest.mark.asyncio
    async def test_second_review_fails_and_keeps_state(self, gate, stored_match, matches, database):
        await gate.review("cand-1", stored_match.id, False)

        with pytest.raises(AlreadyReviewed):
            await gate.review("cand-1", stored_match.id, True)

        current = await matches.get("cand-1", stored_match.id)
        assert current.review_state == ReviewState.REJECTED
        assert await _count(database, ApplyJobRow) == 0

    @pytest.mark.asyncio
    async def test_concurrent_approvals_have_one_winner(self, gate, stored_match, database):
        results = await asyncio.gather(
            *[gate.review("cand-1", stored_match.id, True) for _ in range(4)],
            return_exceptions=True
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(e, AlreadyReviewed) for e in losers)
        assert await _count(database, ApplyJobRow) == 1

    @pytest.mark.asyncio
    async def test_unknown_match_is_not_found(self, gate):
        with pytest.raises(NotFound):
            await gate.review("cand-1", "missing", True)

    @pytest.mark.asyncio
    async def test_match_of_other_candidate_is_not_found(self, gate, stored_match):
        with pytest.raises(NotFound):
            await gate.review("cand-2", stored_match.id, True)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("approved", ["true", 1, None])
    async def test_non_boolean_approval_is_rejected(self, gate, stored_match, matches, approved):
        with pytest.raises(ValidationError):
            await gate.review("cand-1", stored_match.id, approved)

        current = await matches.get("cand-1", stored_match.id)
        assert current.review_state == ReviewState.PENDING
