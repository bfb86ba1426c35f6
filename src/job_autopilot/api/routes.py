"""API routes for Job Autopilot."""

from typing import Optional
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, Query, Request

from job_autopilot import __version__
from job_autopilot.api.models import (
    ApplicationListResponse,
    ApplicationStatsResponse,
    HealthCheck,
    JobStatusResponse,
    MatchListResponse,
    MatchRunResponse,
    MatchStatsResponse,
    MatchView,
    ProfileResponse,
    ProfileUpdateRequest,
    QueueDepthResponse,
    ReviewRequest,
    ReviewResponse,
)
from job_autopilot.core.errors import NotFound, PipelineError
from job_autopilot.core.models import CandidateProfile
from job_autopilot.core.pipeline import Pipeline
from job_autopilot.jobs.profiles import normalize_skills
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)

# Create routers
profiles_router = APIRouter(prefix="/candidates/{candidate_id}/profile", tags=["profiles"])
matches_router = APIRouter(prefix="/candidates/{candidate_id}/matches", tags=["matches"])
applications_router = APIRouter(prefix="/candidates/{candidate_id}/applications", tags=["applications"])
queue_router = APIRouter(prefix="/queue", tags=["queue"])
health_router = APIRouter(prefix="/health", tags=["health"])


def get_pipeline(request: Request) -> Pipeline:
    """The pipeline built for this application instance."""
    return request.app.state.pipeline


async def _match_page(pipeline: Pipeline, candidate_id: str, matches, limit: int, offset: int) -> MatchListResponse:
    listings = await pipeline.listings.get_many({m.listing_id for m in matches})
    return MatchListResponse(
        candidate_id=candidate_id,
        matches=[MatchView.from_match(m, listings.get(m.listing_id)) for m in matches],
        count=len(matches),
        limit=limit,
        offset=offset
    )


@profiles_router.get("", response_model=ProfileResponse)
async def get_profile(candidate_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    return ProfileResponse(profile=await pipeline.profiles.get(candidate_id))


@profiles_router.put("", response_model=ProfileResponse)
async def update_profile(
    candidate_id: str,
    request: ProfileUpdateRequest,
    pipeline: Pipeline = Depends(get_pipeline)
):
    """Create the candidate's profile or replace its skills and preferences."""
    try:
        profile = await pipeline.profiles.get(candidate_id)
    except NotFound:
        profile = CandidateProfile(candidate_id=candidate_id)

    updates = {}
    if request.skills is not None:
        updates["skills"] = normalize_skills(request.skills)
    if request.preferences is not None:
        updates["preferences"] = request.preferences

    logger.info("Profile update requested", candidate_id=candidate_id, fields=sorted(updates))
    stored = await pipeline.profiles.upsert(profile.model_copy(update=updates))
    return ProfileResponse(profile=stored)


@matches_router.get("/pending", response_model=MatchListResponse)
async def get_pending_matches(
    candidate_id: str,
    limit: Optional[int] = Query(None, ge=1, description="Page size, capped by configuration"),
    offset: int = Query(0, ge=0),
    pipeline: Pipeline = Depends(get_pipeline)
):
    """Matches awaiting review, best score first."""
    limit = min(limit or pipeline.matches.page_size, pipeline.matches.page_size)
    matches = await pipeline.matches.list_pending(candidate_id, limit=limit, offset=offset)
    return await _match_page(pipeline, candidate_id, matches, limit, offset)


@matches_router.get("/reviewed", response_model=MatchListResponse)
async def get_reviewed_matches(
    candidate_id: str,
    limit: Optional[int] = Query(None, ge=1, description="Page size, capped by configuration"),
    offset: int = Query(0, ge=0),
    pipeline: Pipeline = Depends(get_pipeline)
):
    """Approved and rejected matches, best score first."""
    limit = min(limit or pipeline.matches.page_size, pipeline.matches.page_size)
    matches = await pipeline.matches.list_reviewed(candidate_id, limit=limit, offset=offset)
    return await _match_page(pipeline, candidate_id, matches, limit, offset)


@matches_router.get("/stats", response_model=MatchStatsResponse)
async def get_match_stats(candidate_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    """Match counts by review state, with active listing counts."""
    by_state = await pipeline.matches.count_by_state(candidate_id)
    window_start = pipeline.matcher.clock() - timedelta(days=pipeline.matcher.window_days)
    return MatchStatsResponse(
        candidate_id=candidate_id,
        by_state=by_state,
        total=sum(by_state.values()),
        active_listings=await pipeline.listings.count_active(),
        recent_listings=await pipeline.listings.count_active(since=window_start)
    )


@matches_router.post("/trigger", response_model=MatchRunResponse)
async def trigger_matching(candidate_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    """Score new listings for the candidate now."""
    logger.info("Manual matching triggered", candidate_id=candidate_id)

    result = await pipeline.matcher.match_candidate(candidate_id)
    return MatchRunResponse(
        candidate_id=candidate_id,
        scored=result.scored,
        matches_created=len(result.matches),
        summary=pipeline.matcher.summarize(result.matches)
    )


@matches_router.put("/{match_id}/review", response_model=ReviewResponse)
async def review_match(
    candidate_id: str,
    match_id: str,
    request: ReviewRequest,
    pipeline: Pipeline = Depends(get_pipeline)
):
    """Approve or reject a pending match. Approval enqueues the application."""
    outcome = await pipeline.review_gate.review(candidate_id, match_id, request.approved)
    return ReviewResponse(match=outcome.match, job_id=outcome.job_id)


@applications_router.get("", response_model=ApplicationListResponse)
async def get_applications(
    candidate_id: str,
    limit: int = Query(50, ge=1, le=200),
    pipeline: Pipeline = Depends(get_pipeline)
):
    """Submitted applications, newest first."""
    records = await pipeline.records.list_for_candidate(candidate_id, limit=limit)
    return ApplicationListResponse(candidate_id=candidate_id, applications=records, count=len(records))


@applications_router.get("/stats", response_model=ApplicationStatsResponse)
async def get_application_stats(candidate_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    """Application counts by status."""
    return ApplicationStatsResponse(**await pipeline.records.stats(candidate_id))


@queue_router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    """Current state of one apply job."""
    return JobStatusResponse(job=await pipeline.queue.get_job_status(job_id))


@queue_router.get("/depth", response_model=QueueDepthResponse)
async def get_queue_depth(pipeline: Pipeline = Depends(get_pipeline)):
    """Number of jobs still queued or processing."""
    return QueueDepthResponse(
        depth=await pipeline.queue.get_queue_depth(),
        by_status=await pipeline.queue.status_counts()
    )


@health_router.get("", response_model=HealthCheck)
async def health_check(pipeline: Pipeline = Depends(get_pipeline)):
    """Service health including database reachability."""
    components = {"api": "healthy"}

    try:
        await pipeline.queue.get_queue_depth()
        components["database"] = "healthy"
    except PipelineError as e:
        logger.warning("Health check database probe failed", error=e.message)
        components["database"] = "unhealthy"

    components["notifications"] = f"{pipeline.dispatcher.pending_count} pending"

    return HealthCheck(
        status="healthy" if components["database"] == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        components=components
    )


# Export all routers
all_routers = [
    profiles_router,
    matches_router,
    applications_router,
    queue_router,
    health_router,
]
