"""Fixtures for CLI tests."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner


@pytest.fixture(autouse=True)
def _no_logging_config(monkeypatch):
    """Keep the root callback from reconfiguring structlog for the whole session."""
    monkeypatch.setattr("jobspine.cli.app.configure_logging", lambda **kwargs: None)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()
