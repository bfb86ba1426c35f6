"""Profile building from résumé documents."""

from typing import Iterable, Optional, Set

from job_autopilot.collaborators.base import ExtractedProfile, ProfileExtractor
from job_autopilot.core.errors import NotFound
from job_autopilot.core.models import CandidateProfile, JobPreferences
from job_autopilot.storage.profiles import ProfileStore
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_skills(skills: Iterable[str]) -> Set[str]:
    """Trim skills and drop case-insensitive duplicates, keeping the first spelling."""
    seen = {}
    for skill in skills:
        cleaned = " ".join(str(skill).split())
        if cleaned and cleaned.lower() not in seen:
            seen[cleaned.lower()] = cleaned
    return set(seen.values())


class ProfileBuilder:
    """Creates or refreshes a candidate profile from a résumé."""
    
    def __init__(self, extractor: ProfileExtractor, store: ProfileStore):
        self.extractor = extractor
        self.store = store
        self.logger = logger.bind(component="profile_builder")
    
    async def build(
        self,
        candidate_id: str,
        document: bytes,
        preferences: Optional[JobPreferences] = None
    ) -> CandidateProfile:
        """
        Extract a profile and store it.
        
        A failed extraction still stores a profile, with an empty skill set
        and the degraded flag set. Without explicit preferences the
        candidate's stored preferences are kept.
        """
        if preferences is None:
            preferences = await self._stored_preferences(candidate_id)

        degraded = False
        try:
            extracted = await self.extractor.extract(document)
        except Exception as e:
            self.logger.warning(
                "Profile extraction failed, storing degraded profile",
                candidate_id=candidate_id,
                error=str(e),
                error_type=type(e).__name__
            )
            extracted = ExtractedProfile()
            degraded = True
        
        profile = CandidateProfile(
            candidate_id=candidate_id,
            skills=normalize_skills(extracted.skills),
            preferences=preferences,
            experience=extracted.experience,
            education=extracted.education,
            certifications=extracted.certifications,
            degraded=degraded
        )
        return await self.store.upsert(profile)
    
    async def _stored_preferences(self, candidate_id: str) -> JobPreferences:
        try:
            return (await self.store.get(candidate_id)).preferences
        except NotFound:
            return JobPreferences()
