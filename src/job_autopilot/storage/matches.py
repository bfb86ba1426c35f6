"""Match repository: one score per (candidate, listing) pair."""

import uuid
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from job_autopilot.core.errors import AlreadyReviewed, NotFound, ValidationError
from job_autopilot.core.models import Match, ReviewState, ScoreResult, utcnow
from job_autopilot.storage.database import Database, insert_ignoring_conflicts
from job_autopilot.storage.tables import MatchRow
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


class MatchRepository:
    """Persists matches with insert-if-absent semantics on the pair key."""
    
    def __init__(self, database: Database, min_score: int = 60, page_size: int = 50):
        self.database = database
        self.min_score = min_score
        self.page_size = page_size
        self.logger = logger.bind(component="match_repository")
    
    async def record_match(
        self,
        candidate_id: str,
        listing_id: str,
        score: ScoreResult
    ) -> Tuple[Match, bool]:
        """
        Store a match unless the pair already has one.
        
        Args:
            candidate_id: Candidate the listing was scored for
            listing_id: Scored listing
            score: Scoring engine output
            
        Returns:
            The stored match and whether this call created it
        """
        if score.total < self.min_score:
            raise ValidationError(
                f"Score {score.total} is below the minimum of {self.min_score}",
                {"candidate_id": candidate_id, "listing_id": listing_id}
            )
        
        row = {
            "id": str(uuid.uuid4()),
            "candidate_id": candidate_id,
            "listing_id": listing_id,
            "score": score.total,
            "reasons": [reason.model_dump(mode="json") for reason in score.reasons],
            "review_state": ReviewState.PENDING.value,
            "created_at": utcnow(),
        }
        
        async with self.database.session() as session:
            inserted = await insert_ignoring_conflicts(
                session, MatchRow, [row], ("candidate_id", "listing_id")
            )
            result = await session.execute(
                select(MatchRow).where(
                    MatchRow.candidate_id == candidate_id,
                    MatchRow.listing_id == listing_id
                )
            )
            match = Match.model_validate(result.scalar_one())
        
        created = inserted > 0
        if created:
            self.logger.info(
                "Match recorded",
                match_id=match.id,
                candidate_id=candidate_id,
                listing_id=listing_id,
                score=match.score
            )
        else:
            self.logger.debug(
                "Match already recorded",
                match_id=match.id,
                candidate_id=candidate_id,
                listing_id=listing_id
            )
        return match, created
    
    async def get(self, candidate_id: str, match_id: str) -> Match:
        async with self.database.session() as session:
            row = await self._get_row(session, candidate_id, match_id)
            return Match.model_validate(row)
    
    async def list_pending(
        self,
        candidate_id: str,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Match]:
        """Unreviewed matches, best score first then newest."""
        return await self._list(candidate_id, [ReviewState.PENDING], limit, offset)
    
    async def list_reviewed(
        self,
        candidate_id: str,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Match]:
        """Approved and rejected matches, best score first then newest."""
        return await self._list(
            candidate_id, [ReviewState.APPROVED, ReviewState.REJECTED], limit, offset
        )
    
    async def matched_listing_ids(self, candidate_id: str) -> Set[str]:
        async with self.database.session() as session:
            result = await session.execute(
                select(MatchRow.listing_id).where(MatchRow.candidate_id == candidate_id)
            )
            return set(result.scalars().all())
    
    async def count_by_state(self, candidate_id: str) -> Dict[str, int]:
        async with self.database.session() as session:
            result = await session.execute(
                select(MatchRow.review_state, func.count())
                .where(MatchRow.candidate_id == candidate_id)
                .group_by(MatchRow.review_state)
            )
            counts = {state.value: 0 for state in ReviewState}
            counts.update({state: count for state, count in result.all()})
            return counts
    
    async def transition_review(
        self,
        session: AsyncSession,
        candidate_id: str,
        match_id: str,
        new_state: ReviewState
    ) -> Match:
        """
        Move a pending match to a reviewed state inside the caller's transaction.
        
        The update only applies while the match is still pending, so of two
        concurrent reviews exactly one wins.
        """
        if new_state == ReviewState.PENDING:
            raise ValidationError("A match cannot be reviewed back to pending")
        
        result = await session.execute(
            update(MatchRow)
            .where(
                MatchRow.id == match_id,
                MatchRow.candidate_id == candidate_id,
                MatchRow.review_state == ReviewState.PENDING.value
            )
            .values(review_state=new_state.value, reviewed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        
        row = await self._get_row(session, candidate_id, match_id)
        if result.rowcount == 0:
            raise AlreadyReviewed(
                f"Match {match_id} was already {row.review_state}",
                {"match_id": match_id, "review_state": row.review_state}
            )
        
        return Match.model_validate(row)
    
    async def _get_row(self, session: AsyncSession, candidate_id: str, match_id: str) -> MatchRow:
        result = await session.execute(
            select(MatchRow).where(MatchRow.id == match_id, MatchRow.candidate_id == candidate_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound(
                f"Match {match_id} not found",
                {"match_id": match_id, "candidate_id": candidate_id}
            )
        return row
    
    async def _list(
        self,
        candidate_id: str,
        states: List[ReviewState],
        limit: Optional[int],
        offset: int
    ) -> List[Match]:
        page = self.page_size if limit is None else max(1, min(limit, self.page_size))
        
        async with self.database.session() as session:
            result = await session.execute(
                select(MatchRow)
                .where(
                    MatchRow.candidate_id == candidate_id,
                    MatchRow.review_state.in_([state.value for state in states])
                )
                .order_by(MatchRow.score.desc(), MatchRow.created_at.desc(), MatchRow.id)
                .limit(page)
                .offset(max(0, offset))
            )
            return [Match.model_validate(row) for row in result.scalars()]
