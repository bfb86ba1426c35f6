"""HTTP client for a remote apply service."""

from typing import Optional

import httpx

from job_autopilot.collaborators.base import ApplyResult
from job_autopilot.core.errors import TransientCollaboratorFailure
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


class HttpApplyClient:
    """Calls ``POST {base_url}/apply`` for each attempt."""
    
    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.logger = logger.bind(component="http_apply_client")
        self._client = client or httpx.AsyncClient(timeout=timeout)
    
    async def apply(self, candidate_id: str, listing_id: str) -> ApplyResult:
        """
        Request an application for a candidate.
        
        Raises:
            TransientCollaboratorFailure: On transport errors and 5xx answers
        """
        try:
            response = await self._client.post(
                f"{self.base_url}/apply",
                json={"candidate_id": candidate_id, "listing_id": listing_id}
            )
        except httpx.HTTPError as e:
            raise TransientCollaboratorFailure(
                f"Apply service unreachable: {e}",
                {"candidate_id": candidate_id, "listing_id": listing_id}
            ) from e
        
        if response.status_code >= 500:
            raise TransientCollaboratorFailure(
                f"Apply service error {response.status_code}",
                {"status_code": response.status_code}
            )
        
        if response.status_code >= 400:
            self.logger.warning(
                "Apply request rejected",
                candidate_id=candidate_id,
                listing_id=listing_id,
                status_code=response.status_code
            )
            return ApplyResult(
                success=False,
                error=f"Apply service rejected request ({response.status_code}): {response.text[:200]}",
                retryable=False
            )
        
        return ApplyResult.model_validate(response.json())
    
    async def close(self) -> None:
        await self._client.aclose()
