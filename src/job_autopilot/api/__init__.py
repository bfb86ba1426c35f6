"""HTTP API package for Job Autopilot."""

from .main import create_app, get_app

__all__ = ["create_app", "get_app"]
