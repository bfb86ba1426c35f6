"""API models for request/response schemas."""

from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field, StrictBool
from datetime import datetime

from job_autopilot.core.models import (
    ApplicationRecord,
    ApplyJob,
    CandidateProfile,
    JobPreferences,
    Match,
    MatchReason,
    ReviewState,
)


class ProfileUpdateRequest(BaseModel):
    """Replace a candidate's skills or preferences. Omitted fields are kept."""
    skills: Optional[List[str]] = Field(None, description="Full skill list")
    preferences: Optional[JobPreferences] = Field(None, description="Job preferences used for scoring")


class ProfileResponse(BaseModel):
    """Stored candidate profile."""
    profile: CandidateProfile


class ReviewRequest(BaseModel):
    """Approve or reject a pending match."""
    approved: StrictBool = Field(..., description="True to approve and enqueue, false to reject")


class MatchView(BaseModel):
    """A match with the listing fields a reviewer needs."""
    id: str = Field(..., description="Match identifier")
    candidate_id: str = Field(..., description="Candidate identifier")
    listing_id: str = Field(..., description="Listing identifier")
    score: int = Field(..., description="Score on the 0-100 scale")
    reasons: List[MatchReason] = Field(default_factory=list, description="Why the listing scored")
    review_state: ReviewState = Field(..., description="pending, approved or rejected")
    created_at: datetime = Field(..., description="When the match was recorded")
    reviewed_at: Optional[datetime] = Field(None, description="When the match was reviewed")
    title: Optional[str] = Field(None, description="Listing title")
    company: Optional[str] = Field(None, description="Listing company")
    location: Optional[str] = Field(None, description="Listing location")
    application_url: Optional[str] = Field(None, description="Listing application URL")

    @classmethod
    def from_match(cls, match: Match, listing: Optional[Any] = None) -> "MatchView":
        view = cls(**match.model_dump())
        if listing is not None:
            view.title = listing.title
            view.company = listing.company
            view.location = listing.location
            view.application_url = listing.application_url
        return view


class MatchListResponse(BaseModel):
    """Page of matches for a candidate."""
    candidate_id: str
    matches: List[MatchView]
    count: int
    limit: int
    offset: int


class MatchRunResponse(BaseModel):
    """Result of a matching run for one candidate."""
    candidate_id: str
    scored: int = Field(..., description="Listings scored")
    matches_created: int = Field(..., description="New matches recorded")
    summary: Dict[str, Any] = Field(default_factory=dict, description="Score summary of the new matches")


class MatchStatsResponse(BaseModel):
    """Match counts for a candidate and the listings available to match."""
    candidate_id: str
    by_state: Dict[str, int] = Field(..., description="Matches per review state")
    total: int
    active_listings: int = Field(..., description="All active listings")
    recent_listings: int = Field(..., description="Active listings inside the matching window")


class ReviewResponse(BaseModel):
    """Outcome of a review."""
    match: Match
    job_id: Optional[str] = Field(None, description="Apply job created on approval")


class ApplicationListResponse(BaseModel):
    """Application records for a candidate."""
    candidate_id: str
    applications: List[ApplicationRecord]
    count: int


class ApplicationStatsResponse(BaseModel):
    """Application counts for a candidate."""
    candidate_id: str
    total: int
    by_status: Dict[str, int]


class QueueDepthResponse(BaseModel):
    """Jobs not yet in a terminal state."""
    depth: int
    by_status: Dict[str, int]


class JobStatusResponse(BaseModel):
    """Current state of an apply job."""
    job: ApplyJob


class HealthCheck(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="Service version")
    components: Dict[str, str] = Field(..., description="Component status")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(..., description="Error timestamp")
