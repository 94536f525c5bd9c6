"""
CLI: ``jobspine serve`` — start the API server.
"""

from __future__ import annotations

import typer
import uvicorn

from jobspine.cli.utils import console
from jobspine.core.settings import SchedulerSettings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address (default: JOBSPINE_HOST)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default: JOBSPINE_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the jobspine REST API and its scheduling engine."""
    settings = SchedulerSettings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold green]Starting jobspine API[/bold green] on {host}:{port}")
    uvicorn.run(
        "jobspine.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=1,
        log_level=log_level,
    )
