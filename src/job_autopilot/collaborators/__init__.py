"""Interfaces to the systems this pipeline calls but does not implement."""

from job_autopilot.collaborators.base import (
    ApplyCollaborator,
    ApplyResult,
    ExtractedProfile,
    ProfileExtractor,
)
from job_autopilot.collaborators.notifications import (
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
    WebhookNotifier,
)

__all__ = [
    "ApplyCollaborator",
    "ApplyResult",
    "ExtractedProfile",
    "LoggingNotifier",
    "NotificationDispatcher",
    "Notifier",
    "ProfileExtractor",
    "WebhookNotifier",
]
