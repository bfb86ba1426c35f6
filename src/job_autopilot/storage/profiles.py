"""Candidate profile store."""

from typing import List

from sqlalchemy import select

from job_autopilot.core.errors import NotFound
from job_autopilot.core.models import CandidateProfile, JobPreferences, utcnow
from job_autopilot.storage.database import Database
from job_autopilot.storage.tables import CandidateProfileRow
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


class ProfileStore:
    """Holds at most one profile per candidate."""
    
    def __init__(self, database: Database):
        self.database = database
        self.logger = logger.bind(component="profile_store")
    
    async def upsert(self, profile: CandidateProfile) -> CandidateProfile:
        """Create the candidate's profile or replace its attributes."""
        profile = profile.model_copy(update={"updated_at": utcnow()})
        
        async with self.database.session() as session:
            row = await session.get(CandidateProfileRow, profile.candidate_id)
            if row is None:
                row = CandidateProfileRow(candidate_id=profile.candidate_id)
                session.add(row)
            
            row.skills = sorted(profile.skills)
            row.preferences = profile.preferences.model_dump(mode="json")
            row.experience = list(profile.experience)
            row.education = list(profile.education)
            row.certifications = list(profile.certifications)
            row.degraded = profile.degraded
            row.updated_at = profile.updated_at
        
        self.logger.info(
            "Profile stored",
            candidate_id=profile.candidate_id,
            skills_count=len(profile.skills),
            degraded=profile.degraded
        )
        return profile
    
    async def get(self, candidate_id: str) -> CandidateProfile:
        async with self.database.session() as session:
            row = await session.get(CandidateProfileRow, candidate_id)
            if row is None:
                raise NotFound(f"Candidate {candidate_id} has no profile", {"candidate_id": candidate_id})
            return _to_profile(row)
    
    async def list_candidate_ids(self) -> List[str]:
        async with self.database.session() as session:
            result = await session.execute(
                select(CandidateProfileRow.candidate_id).order_by(CandidateProfileRow.candidate_id)
            )
            return list(result.scalars().all())


def _to_profile(row: CandidateProfileRow) -> CandidateProfile:
    return CandidateProfile(
        candidate_id=row.candidate_id,
        skills=set(row.skills or []),
        preferences=JobPreferences.model_validate(row.preferences or {}),
        experience=list(row.experience or []),
        education=list(row.education or []),
        certifications=list(row.certifications or []),
        degraded=row.degraded,
        updated_at=row.updated_at,
    )
