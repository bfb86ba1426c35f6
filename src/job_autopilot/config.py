"""Configuration management for Job Autopilot."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Storage
    database_url: str = Field(
        "sqlite+aiosqlite:///./data/job_autopilot.db",
        description="Async SQLAlchemy database URL"
    )
    
    # Application Configuration
    debug: bool = Field(False, description="Enable debug mode")
    log_level: str = Field("INFO", description="Logging level")
    
    # Server Configuration
    host: str = Field("0.0.0.0", description="Server host")
    port: int = Field(8000, description="Server port")
    reload: bool = Field(False, description="Enable auto-reload")
    allowed_origins: list[str] = Field(["*"], description="CORS allowed origins")
    run_workers_in_api: bool = Field(False, description="Run the apply worker pool inside the API process")
    
    # Matching
    match_min_score: int = Field(60, ge=0, le=100, description="Minimum score for a match to be stored")
    match_batch_limit: int = Field(10, ge=1, description="Maximum new matches per candidate per run")
    listing_window_days: int = Field(7, ge=1, description="Only score listings discovered within this many days")
    page_size: int = Field(50, ge=1, description="Page size for match listings")
    
    # Application queue
    queue_concurrency: int = Field(5, ge=1, description="Concurrent apply workers")
    queue_max_attempts: int = Field(3, ge=1, description="Maximum apply attempts per job")
    queue_backoff_base_seconds: float = Field(5.0, ge=0, description="Base retry delay, doubled per attempt")
    rate_limit_max_starts: int = Field(10, ge=1, description="Job starts allowed per rate limit window")
    rate_limit_window_seconds: float = Field(60.0, gt=0, description="Rate limit window length in seconds")
    apply_timeout_seconds: float = Field(30.0, gt=0, description="Apply collaborator timeout in seconds")
    stale_grace_seconds: Optional[float] = Field(None, description="Processing age after which a job is reclaimed")
    sweep_interval_seconds: float = Field(30.0, gt=0, description="Seconds between staleness sweeps")
    poll_interval_seconds: float = Field(1.0, gt=0, description="Idle worker poll interval in seconds")
    
    # Collaborators
    apply_service_url: Optional[str] = Field(None, description="Base URL of the apply service")
    notification_webhook_url: Optional[str] = Field(None, description="Webhook receiving notifications")
    notification_concurrency: int = Field(4, ge=1, description="Concurrent notification deliveries")
    
    @property
    def effective_stale_grace_seconds(self) -> float:
        """Grace period for stuck jobs, twice the apply timeout unless set."""
        if self.stale_grace_seconds is not None:
            return self.stale_grace_seconds
        return self.apply_timeout_seconds * 2


# Global settings instance
settings = Settings()
