"""SQLAlchemy table definitions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from job_autopilot.core.models import utcnow


class Base(DeclarativeBase):
    pass


class CandidateProfileRow(Base):
    __tablename__ = "candidate_profiles"

    candidate_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    experience: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    education: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    certifications: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    degraded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class JobListingRow(Base):
    __tablename__ = "job_listings"
    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_listing_source_external"),
        Index("idx_job_listings_active_discovered", "is_active", "discovered_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    company: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    remote_type: Mapped[Optional[str]] = mapped_column(String(20))
    employment_type: Mapped[Optional[str]] = mapped_column(String(20))
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    salary_range: Mapped[Optional[str]] = mapped_column(String(100))
    application_url: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    discovered_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class MatchRow(Base):
    __tablename__ = "job_matches"
    __table_args__ = (
        UniqueConstraint("candidate_id", "listing_id", name="uq_match_candidate_listing"),
        Index("idx_job_matches_candidate_state", "candidate_id", "review_state"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    candidate_id: Mapped[str] = mapped_column(String(64), nullable=False)
    listing_id: Mapped[str] = mapped_column(ForeignKey("job_listings.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    reasons: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    review_state: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class ApplyJobRow(Base):
    __tablename__ = "apply_jobs"
    __table_args__ = (
        UniqueConstraint("match_id", name="uq_apply_job_match"),
        Index("idx_apply_jobs_claim", "status", "priority", "available_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    candidate_id: Mapped[str] = mapped_column(String(64), nullable=False)
    listing_id: Mapped[str] = mapped_column(String(36), nullable=False)
    match_id: Mapped[str] = mapped_column(ForeignKey("job_matches.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="queued", nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text)
    claim_token: Mapped[Optional[str]] = mapped_column(String(36))
    enqueued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    available_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class ApplicationRecordRow(Base):
    __tablename__ = "application_records"
    __table_args__ = (
        UniqueConstraint("apply_job_id", name="uq_application_record_job"),
        Index("idx_application_records_candidate", "candidate_id", "applied_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    apply_job_id: Mapped[str] = mapped_column(ForeignKey("apply_jobs.id"), nullable=False)
    candidate_id: Mapped[str] = mapped_column(String(64), nullable=False)
    listing_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="applied", nullable=False)
    confirmation_ref: Mapped[Optional[str]] = mapped_column(String(255))
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
