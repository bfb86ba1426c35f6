"""Review gate: the only path from a match to an apply job."""

from job_autopilot.core.errors import ValidationError
from job_autopilot.core.models import ReviewOutcome, ReviewState
from job_autopilot.jobs.queue import ApplicationQueue
from job_autopilot.storage.database import Database
from job_autopilot.storage.matches import MatchRepository
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


class ReviewGate:
    """Records approve/reject decisions and enqueues approved matches."""
    
    def __init__(self, database: Database, matches: MatchRepository, queue: ApplicationQueue):
        self.database = database
        self.matches = matches
        self.queue = queue
        self.logger = logger.bind(component="review_gate")
    
    async def review(self, candidate_id: str, match_id: str, approved: bool) -> ReviewOutcome:
        """
        Approve or reject a pending match.
        
        The state change and, on approval, the apply job are written in one
        transaction.
        
        Raises:
            ValidationError: approved is not a boolean
            NotFound: the match does not exist or belongs to another candidate
            AlreadyReviewed: the match is no longer pending
        """
        if not isinstance(approved, bool):
            raise ValidationError(
                "approved must be boolean",
                {"approved": repr(approved)}
            )
        
        new_state = ReviewState.APPROVED if approved else ReviewState.REJECTED
        job_id = None
        
        async with self.database.session() as session:
            match = await self.matches.transition_review(session, candidate_id, match_id, new_state)
            if approved:
                job_id = await self.queue.enqueue(
                    match.candidate_id, match.listing_id, match.id, session=session
                )
        
        self.logger.info(
            "Match reviewed",
            candidate_id=candidate_id,
            match_id=match_id,
            review_state=new_state.value,
            job_id=job_id
        )
        return ReviewOutcome(match=match, job_id=job_id)
