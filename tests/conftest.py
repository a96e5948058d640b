"""Shared pytest fixtures and test helpers for stackctl tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from stackctl.config.settings import StackSettings
from stackctl.services.builder import BuilderService
from stackctl.services.resolver import Resolver
from stackctl.services.stack import StackService


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> StackSettings:
    """Settings rooted at an empty temp project (no stackctl.toml)."""
    monkeypatch.delenv("STACKCTL_CONFIG", raising=False)
    return StackSettings.from_cli(project_root=tmp_path)


@pytest.fixture
def resolver() -> Resolver:
    return Resolver()


@pytest.fixture
def stack_service(settings: StackSettings) -> StackService:
    return StackService(settings)


@pytest.fixture
def builder_service(settings: StackSettings) -> BuilderService:
    return BuilderService(settings)


@pytest.fixture
def _isolated_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to an empty temp project so the CLI finds no config.

    Use via ``@pytest.mark.usefixtures("_isolated_project")`` on command
    test classes.
    """
    monkeypatch.delenv("STACKCTL_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)

