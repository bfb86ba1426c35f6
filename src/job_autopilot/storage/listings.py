"""Job listing store."""

import uuid
from datetime import datetime
from typing import Collection, Dict, List, Optional

from sqlalchemy import func, select, update

from job_autopilot.core.errors import NotFound
from job_autopilot.core.models import JobListing
from job_autopilot.storage.database import Database
from job_autopilot.storage.tables import JobListingRow
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)

_ATTRIBUTES = (
    "title", "company", "location", "description",
    "salary_range", "application_url", "is_active", "discovered_at",
)


class ListingStore:
    """Active job postings keyed by (source, external id)."""
    
    def __init__(self, database: Database):
        self.database = database
        self.logger = logger.bind(component="listing_store")
    
    async def upsert(self, listing: JobListing) -> JobListing:
        """
        Insert a listing or refresh an existing one from the same source.
        
        A refreshed listing keeps its store id so existing matches stay valid.
        """
        async with self.database.session() as session:
            result = await session.execute(
                select(JobListingRow).where(
                    JobListingRow.source == listing.source,
                    JobListingRow.external_id == listing.external_id
                )
            )
            row = result.scalar_one_or_none()
            
            if row is None:
                row = JobListingRow(
                    id=listing.id or str(uuid.uuid4()),
                    source=listing.source,
                    external_id=listing.external_id
                )
                session.add(row)
            
            for attribute in _ATTRIBUTES:
                setattr(row, attribute, getattr(listing, attribute))
            row.remote_type = listing.remote_type.value if listing.remote_type else None
            row.employment_type = listing.employment_type.value if listing.employment_type else None
            
            await session.flush()
            stored = JobListing.model_validate(row)
        
        self.logger.debug("Listing stored", listing_id=stored.id, source=stored.source)
        return stored
    
    async def get(self, listing_id: str) -> JobListing:
        async with self.database.session() as session:
            row = await session.get(JobListingRow, listing_id)
            if row is None:
                raise NotFound(f"Listing {listing_id} not found", {"listing_id": listing_id})
            return JobListing.model_validate(row)
    
    async def get_many(self, listing_ids: Collection[str]) -> Dict[str, JobListing]:
        if not listing_ids:
            return {}
        
        async with self.database.session() as session:
            result = await session.execute(
                select(JobListingRow).where(JobListingRow.id.in_(list(listing_ids)))
            )
            return {row.id: JobListing.model_validate(row) for row in result.scalars()}
    
    async def deactivate(self, listing_id: str) -> None:
        """Soft-deactivate a listing so it is no longer scored."""
        async with self.database.session() as session:
            result = await session.execute(
                update(JobListingRow)
                .where(JobListingRow.id == listing_id)
                .values(is_active=False)
            )
            if result.rowcount == 0:
                raise NotFound(f"Listing {listing_id} not found", {"listing_id": listing_id})
        
        self.logger.info("Listing deactivated", listing_id=listing_id)
    
    async def list_active(
        self,
        since: Optional[datetime] = None,
        exclude_ids: Collection[str] = (),
        limit: int = 100
    ) -> List[JobListing]:
        """Active listings, newest first."""
        stmt = select(JobListingRow).where(JobListingRow.is_active.is_(True))
        if since is not None:
            stmt = stmt.where(JobListingRow.discovered_at >= since)
        if exclude_ids:
            stmt = stmt.where(JobListingRow.id.not_in(list(exclude_ids)))
        stmt = stmt.order_by(JobListingRow.discovered_at.desc(), JobListingRow.id).limit(limit)
        
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return [JobListing.model_validate(row) for row in result.scalars()]
    
    async def count_active(self, since: Optional[datetime] = None) -> int:
        stmt = select(func.count()).select_from(JobListingRow).where(JobListingRow.is_active.is_(True))
        if since is not None:
            stmt = stmt.where(JobListingRow.discovered_at >= since)
        
        async with self.database.session() as session:
            return (await session.execute(stmt)).scalar_one()
