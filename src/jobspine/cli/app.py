"""
Root Typer application for the jobspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from jobspine import __version__
from jobspine.core.logging import configure_logging

app = Typer(
    name="jobspine",
    help="jobspine — cron job definitions kept in step with a live scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"jobspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option("WARNING", "--log-level", envvar="JOBSPINE_LOG_LEVEL"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines."),
) -> None:
    """jobspine CLI — serve the scheduler API and inspect jobs."""
    configure_logging(level=log_level, json_format=json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from jobspine.cli.cron import check_cron  # noqa: E402
from jobspine.cli.jobs import app as jobs_app  # noqa: E402
from jobspine.cli.serve import serve  # noqa: E402

app.command("serve")(serve)
app.command("check-cron")(check_cron)
app.add_typer(jobs_app, name="jobs", help="Stored job definitions.")
