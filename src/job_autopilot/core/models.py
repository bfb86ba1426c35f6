"""Core data models for Job Autopilot."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every table stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RemotePreference(str, Enum):
    """Where a candidate is willing to work."""
    ANY = "any"
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"


class RemoteType(str, Enum):
    """Where a listing expects the work to happen."""
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"


class EmploymentType(str, Enum):
    """Employment type of a listing or preference."""
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    TEMPORARY = "temporary"


class ReviewState(str, Enum):
    """Review state of a match. Moves out of pending exactly once."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class JobStatus(str, Enum):
    """Lifecycle of an apply job."""
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    
    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


class ApplicationStatus(str, Enum):
    """Outcome stored on an application record."""
    APPLIED = "applied"
    FAILED = "failed"


class FactorKind(str, Enum):
    """Scoring factors, one reason kind each."""
    SKILL = "skill"
    TITLE = "title"
    LOCATION = "location"
    SALARY = "salary"
    EMPLOYMENT_TYPE = "employment_type"


class JobPreferences(BaseModel):
    """Candidate job preferences used by the scoring engine."""
    desired_titles: Set[str] = Field(default_factory=set, description="Desired job titles")
    remote_preference: RemotePreference = Field(RemotePreference.ANY, description="Remote, hybrid, onsite or any")
    min_salary: Optional[int] = Field(None, ge=0, description="Minimum acceptable salary")
    employment_types: Set[EmploymentType] = Field(default_factory=set, description="Preferred employment types")


class CandidateProfile(BaseModel):
    """Extracted candidate attributes. One per candidate."""
    model_config = ConfigDict(from_attributes=True)
    
    candidate_id: str = Field(..., min_length=1, description="Stable candidate identifier")
    skills: Set[str] = Field(default_factory=set, description="Candidate skills")
    preferences: JobPreferences = Field(default_factory=JobPreferences, description="Job preferences")
    experience: List[str] = Field(default_factory=list, description="Experience summaries")
    education: List[str] = Field(default_factory=list, description="Education entries")
    certifications: List[str] = Field(default_factory=list, description="Certifications")
    degraded: bool = Field(False, description="Created after a failed extraction")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update time")


class JobListing(BaseModel):
    """Active job posting with the attributes scoring needs."""
    model_config = ConfigDict(from_attributes=True)
    
    id: Optional[str] = Field(None, description="Store-assigned identifier")
    source: str = Field(..., min_length=1, description="Listing source, e.g. linkedin")
    external_id: str = Field(..., min_length=1, description="Identifier at the source")
    title: str = Field(..., description="Job title")
    company: str = Field("", description="Hiring company")
    location: Optional[str] = Field(None, description="Location text")
    remote_type: Optional[RemoteType] = Field(None, description="Remote, hybrid or onsite")
    employment_type: Optional[EmploymentType] = Field(None, description="Employment type")
    description: str = Field("", description="Free-text description")
    salary_range: Optional[str] = Field(None, description="Unparsed salary text")
    application_url: Optional[str] = Field(None, description="Where to apply")
    is_active: bool = Field(True, description="Soft-deactivation flag")
    discovered_at: datetime = Field(default_factory=utcnow, description="Discovery time")


class MatchReason(BaseModel):
    """One explainable contribution to a match score."""
    kind: FactorKind
    description: str
    contribution: float


class ScoreResult(BaseModel):
    """Output of the scoring engine."""
    total: int = Field(..., ge=0, le=100)
    reasons: List[MatchReason] = Field(default_factory=list)
    breakdown: Dict[FactorKind, float] = Field(default_factory=dict)


class Match(BaseModel):
    """Scored association between a candidate and a listing."""
    model_config = ConfigDict(from_attributes=True)
    
    id: str
    candidate_id: str
    listing_id: str
    score: int = Field(..., ge=0, le=100)
    reasons: List[MatchReason] = Field(default_factory=list)
    review_state: ReviewState = ReviewState.PENDING
    created_at: datetime
    reviewed_at: Optional[datetime] = None


class ApplyJob(BaseModel):
    """Durable unit of work for one apply attempt sequence."""
    model_config = ConfigDict(from_attributes=True)
    
    id: str
    candidate_id: str
    listing_id: str
    match_id: str
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    max_attempts: int = 3
    priority: int = 0
    last_error: Optional[str] = None
    claim_token: Optional[str] = None
    enqueued_at: datetime
    available_at: datetime
    claimed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime


class ApplicationRecord(BaseModel):
    """Outcome of a successfully completed apply job."""
    model_config = ConfigDict(from_attributes=True)
    
    id: str
    apply_job_id: str
    candidate_id: str
    listing_id: str
    status: ApplicationStatus = ApplicationStatus.APPLIED
    confirmation_ref: Optional[str] = None
    applied_at: datetime


class ReviewOutcome(BaseModel):
    """Result of a review decision."""
    match: Match
    job_id: Optional[str] = None


class NotificationKind(str, Enum):
    """Events sent to the notification channel."""
    MATCHES_FOUND = "matches_found"
    APPLICATION_SUBMITTED = "application_submitted"
    APPLY_EXHAUSTED = "apply_exhausted"


class Notification(BaseModel):
    """Fire-and-forget notification payload."""
    kind: NotificationKind
    candidate_id: str
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
