"""Error taxonomy for the matching and application pipeline."""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for errors surfaced by the pipeline."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PipelineError):
    """Input has the wrong shape. Never retried."""


class NotFound(PipelineError):
    """Unknown candidate, listing, match or job."""


class AlreadyReviewed(PipelineError):
    """A match left the pending state before this review arrived."""


class TransientCollaboratorFailure(PipelineError):
    """An apply attempt failed in a way that may succeed on retry."""


class PersistenceFailure(PipelineError):
    """Storage is unavailable or rejected the operation."""
