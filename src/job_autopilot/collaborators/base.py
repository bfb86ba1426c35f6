"""Collaborator protocols and the data they exchange."""

from typing import List, Optional, Protocol

from pydantic import BaseModel, Field


class ApplyResult(BaseModel):
    """Answer of the apply collaborator for one attempt."""
    success: bool = Field(..., description="Whether the application was submitted")
    application_ref: Optional[str] = Field(None, description="External confirmation reference")
    error: Optional[str] = Field(None, description="Failure description")
    retryable: bool = Field(True, description="Whether a later attempt may succeed")


class ExtractedProfile(BaseModel):
    """Structured attributes extracted from a résumé."""
    skills: List[str] = Field(default_factory=list)
    experience: List[str] = Field(default_factory=list)
    education: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)


class ApplyCollaborator(Protocol):
    """Submits an application on a third-party site."""
    
    async def apply(self, candidate_id: str, listing_id: str) -> ApplyResult:
        ...


class ProfileExtractor(Protocol):
    """Turns a résumé document into structured attributes."""
    
    async def extract(self, document: bytes) -> ExtractedProfile:
        ...
