"""Application record store."""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from job_autopilot.core.models import ApplicationRecord, ApplicationStatus, ApplyJob, utcnow
from job_autopilot.storage.database import Database, insert_ignoring_conflicts
from job_autopilot.storage.tables import ApplicationRecordRow
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


class ApplicationRecordStore:
    """Outcomes of apply jobs that completed successfully."""
    
    def __init__(self, database: Database):
        self.database = database
        self.logger = logger.bind(component="application_records")
    
    async def add(
        self,
        session: AsyncSession,
        job: ApplyJob,
        confirmation_ref: Optional[str] = None
    ) -> ApplicationRecord:
        """
        Write the record for a succeeded job inside the caller's transaction.
        
        A job has at most one record; repeating the write returns the
        existing one.
        """
        row = {
            "id": str(uuid.uuid4()),
            "apply_job_id": job.id,
            "candidate_id": job.candidate_id,
            "listing_id": job.listing_id,
            "status": ApplicationStatus.APPLIED.value,
            "confirmation_ref": confirmation_ref,
            "applied_at": utcnow(),
        }
        await insert_ignoring_conflicts(session, ApplicationRecordRow, [row], ("apply_job_id",))
        
        result = await session.execute(
            select(ApplicationRecordRow).where(ApplicationRecordRow.apply_job_id == job.id)
        )
        return ApplicationRecord.model_validate(result.scalar_one())
    
    async def get_for_job(self, job_id: str) -> Optional[ApplicationRecord]:
        async with self.database.session() as session:
            result = await session.execute(
                select(ApplicationRecordRow).where(ApplicationRecordRow.apply_job_id == job_id)
            )
            row = result.scalar_one_or_none()
            return ApplicationRecord.model_validate(row) if row else None
    
    async def list_for_candidate(self, candidate_id: str, limit: int = 50) -> List[ApplicationRecord]:
        async with self.database.session() as session:
            result = await session.execute(
                select(ApplicationRecordRow)
                .where(ApplicationRecordRow.candidate_id == candidate_id)
                .order_by(ApplicationRecordRow.applied_at.desc())
                .limit(limit)
            )
            return [ApplicationRecord.model_validate(row) for row in result.scalars()]
    
    async def stats(self, candidate_id: str) -> Dict[str, Any]:
        """Total applications and count per status for a candidate."""
        async with self.database.session() as session:
            result = await session.execute(
                select(ApplicationRecordRow.status, func.count())
                .where(ApplicationRecordRow.candidate_id == candidate_id)
                .group_by(ApplicationRecordRow.status)
            )
            by_status = {status.value: 0 for status in ApplicationStatus}
            by_status.update({status: count for status, count in result.all()})
        
        return {
            "candidate_id": candidate_id,
            "total": sum(by_status.values()),
            "by_status": by_status,
        }
