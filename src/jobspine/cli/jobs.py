"""
CLI: ``jobspine jobs`` — inspect stored job definitions.
"""

from __future__ import annotations

import typer

from jobspine.cli.utils import err_console, open_store, output_jobs
from jobspine.core.errors import JobSpineError

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_jobs(
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL of the job store"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List stored job definitions."""
    try:
        jobs = open_store(database).find_all()
    except JobSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.code}): {e.message}")
        raise typer.Exit(code=1) from e
    output_jobs(jobs, as_json=json_out, title="Jobs")
