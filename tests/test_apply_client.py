"""Tests for the HTTP apply collaborator client."""

import json

import httpx
import pytest

from job_autopilot.collaborators.apply_client import HttpApplyClient
from job_autopilot.core.errors import TransientCollaboratorFailure


def client_for(handler) -> HttpApplyClient:
    transport = httpx.MockTransport(handler)
    return HttpApplyClient("https://apply.example.com/", client=httpx.AsyncClient(transport=transport))


class TestHttpApplyClient:
    """Mapping of HTTP answers to apply results."""

    @pytest.mark.asyncio
    async def test_success_body_is_the_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "application_ref": "conf-7"})

        client = client_for(handler)
        result = await client.apply("cand-1", "listing-1")
        await client.close()

        assert result.success is True
        assert result.application_ref == "conf-7"
        assert seen["url"] == "https://apply.example.com/apply"
        assert seen["body"] == {"candidate_id": "cand-1", "listing_id": "listing-1"}

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        client = client_for(lambda request: httpx.Response(502, text="bad gateway"))

        with pytest.raises(TransientCollaboratorFailure):
            await client.apply("cand-1", "listing-1")

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = client_for(handler)

        with pytest.raises(TransientCollaboratorFailure) as exc_info:
            await client.apply("cand-1", "listing-1")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_client_error_is_a_final_rejection(self):
        client = client_for(lambda request: httpx.Response(422, text="listing closed"))

        result = await client.apply("cand-1", "listing-1")

        assert result.success is False
        assert result.retryable is False
        assert "422" in result.error
        assert "listing closed" in result.error

    @pytest.mark.asyncio
    async def test_reported_failure_keeps_retry_flag(self):
        client = client_for(lambda request: httpx.Response(
            200, json={"success": False, "error": "captcha", "retryable": True}
        ))

        result = await client.apply("cand-1", "listing-1")

        assert result.success is False
        assert result.retryable is True
        assert result.error == "captcha"
