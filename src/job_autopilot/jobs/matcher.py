"""Batch matching of candidates against the listing pool."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from job_autopilot.collaborators.notifications import NotificationDispatcher
from job_autopilot.core.errors import PipelineError
from job_autopilot.core.models import Match, Notification, NotificationKind, utcnow
from job_autopilot.jobs.scoring import MatchScorer
from job_autopilot.storage.listings import ListingStore
from job_autopilot.storage.matches import MatchRepository
from job_autopilot.storage.profiles import ProfileStore
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MatchRunResult:
    """Matches created for one candidate in one run."""
    candidate_id: str
    scored: int
    matches: List[Match] = field(default_factory=list)


class JobMatcher:
    """Scores new listings for candidates and records the good ones."""

    def __init__(
        self,
        profiles: ProfileStore,
        listings: ListingStore,
        matches: MatchRepository,
        scorer: MatchScorer,
        dispatcher: NotificationDispatcher,
        batch_limit: int = 10,
        window_days: int = 7,
        candidate_pool: int = 100,
        clock: Callable[[], datetime] = utcnow
    ):
        self.logger = logger.bind(component="job_matcher")
        self.profiles = profiles
        self.listings = listings
        self.matches = matches
        self.scorer = scorer
        self.dispatcher = dispatcher
        self.batch_limit = batch_limit
        self.window_days = window_days
        self.candidate_pool = candidate_pool
        self.clock = clock

    async def match_candidate(self, candidate_id: str, limit: Optional[int] = None) -> MatchRunResult:
        """
        Score recent unmatched listings for a candidate.

        Args:
            candidate_id: Candidate to match
            limit: Stop after this many new matches

        Returns:
            Listings scored and matches created
        """
        if limit is None:
            limit = self.batch_limit
        profile = await self.profiles.get(candidate_id)

        already_matched = await self.matches.matched_listing_ids(candidate_id)
        listings = await self.listings.list_active(
            since=self.clock() - timedelta(days=self.window_days),
            exclude_ids=already_matched,
            limit=self.candidate_pool
        )

        self.logger.info(
            "Matching jobs for candidate",
            candidate_id=candidate_id,
            unmatched_listings=len(listings),
            skills_count=len(profile.skills)
        )

        result = MatchRunResult(candidate_id=candidate_id, scored=0)

        for listing in listings:
            if len(result.matches) >= limit:
                break

            score = self.scorer.score(profile, profile.preferences, listing)
            result.scored += 1

            if score.total < self.matches.min_score:
                continue

            match, created = await self.matches.record_match(candidate_id, listing.id, score)
            if created:
                result.matches.append(match)

        self.logger.info(
            "Candidate matching completed",
            candidate_id=candidate_id,
            scored=result.scored,
            matches_created=len(result.matches)
        )

        if result.matches:
            top = sorted(result.matches, key=lambda m: m.score, reverse=True)[:3]
            self.dispatcher.submit(Notification(
                kind=NotificationKind.MATCHES_FOUND,
                candidate_id=candidate_id,
                title=f"We Found {len(result.matches)} Jobs for You",
                message=f"{len(result.matches)} new job matches are waiting for your review",
                data={
                    "match_count": len(result.matches),
                    "top_matches": [{"match_id": m.id, "listing_id": m.listing_id, "score": m.score} for m in top],
                }
            ))

        return result

    async def match_all(self) -> Dict[str, Any]:
        """
        Run matching for every stored candidate.

        A failure for one candidate is logged and counted; the run goes on.
        """
        candidate_ids = await self.profiles.list_candidate_ids()
        self.logger.info("Matching jobs for all candidates", candidates=len(candidate_ids))

        total_matches = 0
        failures: Dict[str, str] = {}

        for candidate_id in candidate_ids:
            try:
                result = await self.match_candidate(candidate_id)
                total_matches += len(result.matches)
            except PipelineError as e:
                failures[candidate_id] = e.message
                self.logger.error(
                    "Matching failed for candidate",
                    candidate_id=candidate_id,
                    error=e.message,
                    error_type=type(e).__name__
                )

        self.logger.info(
            "Matching run complete",
            candidates=len(candidate_ids),
            matches_created=total_matches,
            failed=len(failures)
        )

        return {
            "candidates": len(candidate_ids),
            "matches_created": total_matches,
            "failed": failures,
        }

    def summarize(self, matches: List[Match]) -> Dict[str, Any]:
        """Summary statistics for a list of matches."""
        if not matches:
            return {"total_matches": 0, "average_score": 0.0, "top_matches": []}

        ranked = sorted(matches, key=lambda m: (m.score, m.created_at), reverse=True)

        return {
            "total_matches": len(matches),
            "average_score": round(sum(m.score for m in matches) / len(matches), 2),
            "top_matches": [
                {
                    "match_id": m.id,
                    "listing_id": m.listing_id,
                    "score": m.score,
                    "reasons": [reason.description for reason in m.reasons]
                }
                for m in ranked[:5]
            ]
        }
