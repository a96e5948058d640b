"""Tests for the root stackctl CLI."""

import pytest
from click.testing import CliRunner

from stackctl import __version__
from stackctl.cli import cli


def test_cli_help(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "stackctl" in result.output
    for command in ("create", "builder", "rules"):
        assert command in result.output


def test_cli_version(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


@pytest.mark.usefixtures("_isolated_project")
def test_cli_no_args(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, [])
    assert result.exit_code == 0
    assert "Usage" in result.output


# --- Global flags ---


@pytest.mark.parametrize(
    "flag", ["--json", "-q", "-v", "--log-json", "--no-interact", "--config=/tmp/stackctl.toml"]
)
def test_global_flag_accepted(cli_runner: CliRunner, flag: str) -> None:
    result = cli_runner.invoke(cli, [flag, "--version"])
    assert result.exit_code == 0


@pytest.mark.usefixtures("_isolated_project")
def test_missing_config_file(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, ["-c", "missing.toml", "rules"])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


@pytest.mark.usefixtures("_isolated_project")
def test_verbose_logs_rule_firings(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, ["-v", "--log-json", "create", "app", "--backend", "convex"])
    assert result.exit_code == 0
    assert "Resolved stack for app" in result.stderr
