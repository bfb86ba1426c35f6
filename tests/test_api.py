"""Tests for the HTTP API."""

import httpx
import pytest
import pytest_asyncio

from job_autopilot.api.main import create_app, status_for
from job_autopilot.collaborators.base import ApplyResult
from job_autopilot.config import Settings
from job_autopilot.core.errors import AlreadyReviewed, NotFound, PersistenceFailure, PipelineError, ValidationError
from job_autopilot.core.pipeline import build_pipeline

from conftest import RecordingNotifier, ScriptedApplyCollaborator, make_listing, make_profile


@pytest.fixture
def api_settings(tmp_path):
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", debug=True)


@pytest_asyncio.fixture
async def pipeline(api_settings, clock):
    pipeline = build_pipeline(
        api_settings,
        apply_collaborator=ScriptedApplyCollaborator(ApplyResult(success=True, application_ref="conf-1")),
        notifier=RecordingNotifier(),
        clock=clock
    )
    await pipeline.start()
    yield pipeline
    await pipeline.close()


@pytest_asyncio.fixture
async def client(pipeline, api_settings):
    app = create_app(pipeline=pipeline, config=api_settings)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def pending_match(pipeline):
    await pipeline.profiles.upsert(make_profile())
    await pipeline.listings.upsert(make_listing("strong"))
    result = await pipeline.matcher.match_candidate("cand-1")
    return result.matches[0]


class TestProfileRoutes:
    """Creating and updating candidate profiles."""

    @pytest.mark.asyncio
    async def test_put_creates_profile_that_can_be_matched(self, client, pipeline):
        await pipeline.listings.upsert(make_listing("strong"))

        response = await client.put("/api/v1/candidates/cand-7/profile", json={
            "skills": ["Python", " python ", "Django", "PostgreSQL", "AWS"],
            "preferences": {
                "desired_titles": ["Python Developer"],
                "remote_preference": "remote",
                "min_salary": 100000,
                "employment_types": ["full_time"]
            }
        })

        assert response.status_code == 200
        assert sorted(response.json()["profile"]["skills"]) == ["AWS", "Django", "PostgreSQL", "Python"]

        trigger = await client.post("/api/v1/candidates/cand-7/matches/trigger")
        assert trigger.json()["matches_created"] == 1

    @pytest.mark.asyncio
    async def test_put_preferences_keeps_skills(self, client, pipeline):
        await pipeline.profiles.upsert(make_profile())

        response = await client.put(
            "/api/v1/candidates/cand-1/profile", json={"preferences": {"min_salary": 150000}}
        )

        stored = await pipeline.profiles.get("cand-1")
        assert response.status_code == 200
        assert stored.skills == {"Python", "Django", "PostgreSQL", "AWS"}
        assert stored.preferences.min_salary == 150000

    @pytest.mark.asyncio
    async def test_invalid_preferences_are_422(self, client):
        response = await client.put(
            "/api/v1/candidates/cand-1/profile", json={"preferences": {"min_salary": -1}}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_unknown_profile_is_404(self, client):
        response = await client.get("/api/v1/candidates/ghost/profile")

        assert response.status_code == 404


class TestMatchRoutes:
    """Listing, triggering and reviewing matches."""

    @pytest.mark.asyncio
    async def test_pending_matches_embed_listing(self, client, pending_match):
        response = await client.get("/api/v1/candidates/cand-1/matches/pending")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["matches"][0]["id"] == pending_match.id
        assert body["matches"][0]["title"] == "Senior Python Developer"
        assert body["matches"][0]["company"] == "Acme"
        assert body["matches"][0]["reasons"]

    @pytest.mark.asyncio
    async def test_limit_must_be_positive(self, client):
        response = await client.get("/api/v1/candidates/cand-1/matches/pending", params={"limit": 0})

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_stats_count_states_and_listings(self, client, pipeline, pending_match):
        listing = await pipeline.listings.upsert(make_listing("closed"))
        await pipeline.listings.deactivate(listing.id)

        response = await client.get("/api/v1/candidates/cand-1/matches/stats")

        assert response.status_code == 200
        assert response.json() == {
            "candidate_id": "cand-1",
            "by_state": {"pending": 1, "approved": 0, "rejected": 0},
            "total": 1,
            "active_listings": 1,
            "recent_listings": 1
        }

    @pytest.mark.asyncio
    async def test_trigger_runs_matcher(self, client, pipeline):
        await pipeline.profiles.upsert(make_profile())
        await pipeline.listings.upsert(make_listing("strong"))

        response = await client.post("/api/v1/candidates/cand-1/matches/trigger")

        assert response.status_code == 200
        body = response.json()
        assert body["matches_created"] == 1
        assert body["summary"]["total_matches"] == 1

    @pytest.mark.asyncio
    async def test_trigger_for_unknown_candidate_is_404(self, client):
        response = await client.post("/api/v1/candidates/ghost/matches/trigger")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    @pytest.mark.asyncio
    async def test_approve_then_review_again(self, client, pending_match):
        url = f"/api/v1/candidates/cand-1/matches/{pending_match.id}/review"

        approved = await client.put(url, json={"approved": True})
        again = await client.put(url, json={"approved": False})

        assert approved.status_code == 200
        assert approved.json()["match"]["review_state"] == "approved"
        assert approved.json()["job_id"]
        assert again.status_code == 409
        assert again.json()["error"] == "AlreadyReviewed"

        reviewed = await client.get("/api/v1/candidates/cand-1/matches/reviewed")
        assert [m["id"] for m in reviewed.json()["matches"]] == [pending_match.id]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"approved": "true"}, {"approved": 1}, {}])
    async def test_non_boolean_approval_is_422(self, client, pending_match, payload):
        response = await client.put(
            f"/api/v1/candidates/cand-1/matches/{pending_match.id}/review", json=payload
        )

        assert response.status_code == 422
        assert "validation_errors" in response.json()["details"]

    @pytest.mark.asyncio
    async def test_review_unknown_match_is_404(self, client):
        response = await client.put("/api/v1/candidates/cand-1/matches/missing/review", json={"approved": True})

        assert response.status_code == 404


class TestQueueAndApplicationRoutes:
    """Queue introspection and application history."""

    @pytest.mark.asyncio
    async def test_approved_match_flows_to_application(self, client, pipeline, pending_match):
        review = await client.put(
            f"/api/v1/candidates/cand-1/matches/{pending_match.id}/review", json={"approved": True}
        )
        job_id = review.json()["job_id"]

        depth = await client.get("/api/v1/queue/depth")
        assert depth.json()["depth"] == 1
        assert depth.json()["by_status"]["queued"] == 1

        await pipeline.worker.process_next()

        job = await client.get(f"/api/v1/queue/jobs/{job_id}")
        assert job.status_code == 200
        assert job.json()["job"]["status"] == "succeeded"

        applications = await client.get("/api/v1/candidates/cand-1/applications")
        assert applications.json()["count"] == 1
        assert applications.json()["applications"][0]["confirmation_ref"] == "conf-1"

        stats = await client.get("/api/v1/candidates/cand-1/applications/stats")
        assert stats.json() == {"candidate_id": "cand-1", "total": 1, "by_status": {"applied": 1, "failed": 0}}

    @pytest.mark.asyncio
    async def test_unknown_job_is_404(self, client):
        response = await client.get("/api/v1/queue/jobs/missing")

        assert response.status_code == 404
        assert response.json()["details"] == {"job_id": "missing"}

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["components"]["database"] == "healthy"


class TestErrorMapping:
    """Pipeline errors to HTTP status codes."""

    @pytest.mark.parametrize("error,status", [
        (ValidationError("bad"), 400),
        (NotFound("missing"), 404),
        (AlreadyReviewed("done"), 409),
        (PersistenceFailure("db down"), 503),
        (PipelineError("other"), 500),
    ])
    def test_status_for(self, error, status):
        assert status_for(error) == status
