"""
CLI: ``jobspine check-cron`` — validate an expression and preview fire times.
"""

from __future__ import annotations

import typer
from rich.table import Table

from jobspine.cli.utils import console, err_console
from jobspine.core.errors import InvalidScheduleError
from jobspine.core.scheduling.cron import next_fire_times


def check_cron(
    expression: str = typer.Argument(..., help="Quartz (6/7 fields) or crontab (5 fields) expression"),
    count: int = typer.Option(5, "--count", "-n", min=1, max=100, help="Fire times to show"),
    timezone: str = typer.Option("UTC", "--timezone", "--tz"),
) -> None:
    """Validate a cron expression and print its next fire times."""
    try:
        times = next_fire_times(expression, count, timezone=timezone)
    except InvalidScheduleError as e:
        err_console.print(f"[bold red]Invalid[/bold red]: {e.reason}")
        raise typer.Exit(code=1) from e

    table = Table(title=f"Next fire times: {expression}")
    table.add_column("#", justify="right")
    table.add_column("Fire time")
    for i, fire in enumerate(times, start=1):
        table.add_row(str(i), fire.isoformat())
    console.print(table)
