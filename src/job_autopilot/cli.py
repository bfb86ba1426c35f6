"""Command-line interface for Job Autopilot."""

import asyncio
import signal

import typer
from rich.console import Console
from rich.table import Table

from job_autopilot.config import settings
from job_autopilot.core.errors import PipelineError
from job_autopilot.core.pipeline import Pipeline, build_pipeline
from job_autopilot.utils.logging import configure_logging

app = typer.Typer(
    name="autopilot",
    help="Job Autopilot - job matching, review and automated applications",
    add_completion=False,
)
console = Console()


async def _with_pipeline(action):
    pipeline = build_pipeline(settings)
    await pipeline.start()
    try:
        return await action(pipeline)
    finally:
        await pipeline.close()


def _run(action):
    """Run an async action against a started pipeline, reporting pipeline errors."""
    configure_logging()
    try:
        return asyncio.run(_with_pipeline(action))
    except PipelineError as e:
        console.print(f"[red]{type(e).__name__}:[/red] {e.message}")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option(settings.host, help="Host to bind to"),
    port: int = typer.Option(settings.port, help="Port to bind to"),
    reload: bool = typer.Option(settings.reload, help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    console.print(f"Starting Job Autopilot API on {host}:{port}")
    uvicorn.run(
        "job_autopilot.api.main:get_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )


@app.command()
def config() -> None:
    """Show current configuration."""
    table = Table(title="Job Autopilot Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    # Show non-sensitive settings
    table.add_row("Database", settings.database_url.split("://")[0])
    table.add_row("Debug Mode", str(settings.debug))
    table.add_row("Log Level", settings.log_level)
    table.add_row("Match Min Score", str(settings.match_min_score))
    table.add_row("Match Batch Limit", str(settings.match_batch_limit))
    table.add_row("Listing Window (days)", str(settings.listing_window_days))
    table.add_row("Workers", str(settings.queue_concurrency))
    table.add_row("Max Attempts", str(settings.queue_max_attempts))
    table.add_row("Backoff Base (s)", f"{settings.queue_backoff_base_seconds:g}")
    table.add_row(
        "Rate Limit",
        f"{settings.rate_limit_max_starts} per {settings.rate_limit_window_seconds:g}s"
    )
    table.add_row("Apply Timeout (s)", f"{settings.apply_timeout_seconds:g}")
    table.add_row("Stale Grace (s)", f"{settings.effective_stale_grace_seconds:g}")
    table.add_row("Apply Service", "configured" if settings.apply_service_url else "not configured")
    table.add_row("Notification Webhook", "configured" if settings.notification_webhook_url else "log only")

    console.print(table)


@app.command("init-db")
def init_db() -> None:
    """Create the database schema."""
    async def action(pipeline: Pipeline) -> None:
        return None

    _run(action)
    console.print("Database schema ready")


@app.command()
def match(candidate: str = typer.Argument(..., help="Candidate identifier")) -> None:
    """Score new listings for one candidate."""
    async def action(pipeline: Pipeline):
        result = await pipeline.matcher.match_candidate(candidate)
        return result, pipeline.matcher.summarize(result.matches)

    result, summary = _run(action)

    table = Table(title=f"New matches for {candidate}")
    table.add_column("Match", style="cyan")
    table.add_column("Listing")
    table.add_column("Score", style="green", justify="right")
    table.add_column("Reasons")
    for top in summary["top_matches"]:
        table.add_row(top["match_id"], top["listing_id"], str(top["score"]), "; ".join(top["reasons"]))

    console.print(table)
    console.print(
        f"Scored {result.scored} listings, recorded {len(result.matches)} matches "
        f"(average score {summary['average_score']})"
    )


@app.command("match-all")
def match_all() -> None:
    """Score new listings for every candidate."""
    async def action(pipeline: Pipeline):
        return await pipeline.matcher.match_all()

    outcome = _run(action)
    console.print(
        f"Matched {outcome['candidates']} candidates, recorded {outcome['matches_created']} matches"
    )
    for candidate_id, error in outcome["failed"].items():
        console.print(f"[yellow]{candidate_id}[/yellow]: {error}")


@app.command()
def work() -> None:
    """Run the application worker pool until interrupted."""
    async def action(pipeline: Pipeline) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, pipeline.worker.stop)
        console.print(
            f"Running {pipeline.worker.concurrency} workers, press Ctrl+C to stop"
        )
        await pipeline.worker.run()

    _run(action)
    console.print("Workers stopped")


@app.command("job-status")
def job_status(job_id: str = typer.Argument(..., help="Apply job identifier")) -> None:
    """Show the state of an apply job."""
    async def action(pipeline: Pipeline):
        return await pipeline.queue.get_job_status(job_id)

    job = _run(action)

    table = Table(title=f"Apply job {job.id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Status", job.status.value)
    table.add_row("Candidate", job.candidate_id)
    table.add_row("Listing", job.listing_id)
    table.add_row("Attempts", f"{job.attempts}/{job.max_attempts}")
    table.add_row("Available At", job.available_at.isoformat())
    table.add_row("Last Error", job.last_error or "-")
    console.print(table)


@app.command("queue-depth")
def queue_depth() -> None:
    """Show how many jobs are waiting or in progress."""
    async def action(pipeline: Pipeline):
        return await pipeline.queue.get_queue_depth(), await pipeline.queue.status_counts()

    depth, counts = _run(action)

    table = Table(title=f"Queue depth: {depth}")
    table.add_column("Status", style="cyan")
    table.add_column("Jobs", style="green", justify="right")
    for status, count in counts.items():
        table.add_row(status, str(count))
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from job_autopilot import __version__
    console.print(f"Job Autopilot v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
