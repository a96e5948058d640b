"""Tests for ``stackctl create``: flags, conflicts, prompts and parsing."""

from __future__ import annotations

import json
import shlex
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from stackctl.cli import cli
from stackctl.commands.create import parse_command
from stackctl.services.stack import FlagInput, StackService


def _json(cli_runner: CliRunner, *args: str) -> dict[str, Any]:
    result = cli_runner.invoke(cli, ["--json", "create", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def _interactive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("stackctl.commands.create._is_interactive", lambda app: True)


@pytest.mark.usefixtures("_isolated_project")
class TestCreateFlags:
    def test_defaults(self, cli_runner: CliRunner) -> None:
        out = _json(cli_runner, "shop", "--yes")
        assert out["ok"] is True
        assert out["op"] == "create_stack"
        assert out["data"]["command"] == "stackctl create shop --yes"
        assert out["data"]["stack"]["backend"] == "hono"

    def test_explicit_flag_drives_defaults(self, cli_runner: CliRunner) -> None:
        out = _json(cli_runner, "shop", "--yes", "--backend", "convex")
        assert out["data"]["command"] == "stackctl create shop --yes --backend convex"
        assert out["data"]["stack"]["database"] == "none"

    def test_set_flags_comma_and_repeat(self, cli_runner: CliRunner) -> None:
        out = _json(
            cli_runner,
            "shop",
            "--yes",
            "--frontend",
            "next,native-nativewind",
            "--addons",
            "pwa",
            "--addons",
            "biome",
        )
        stack = out["data"]["stack"]
        assert stack["frontend"] == ["next", "native-nativewind"]
        assert stack["addons"] == ["pwa", "biome"]

    def test_empty_set(self, cli_runner: CliRunner) -> None:
        out = _json(cli_runner, "api", "--yes", "--frontend", "none")
        assert out["data"]["stack"]["frontend"] == []

    def test_boolean_flags(self, cli_runner: CliRunner) -> None:
        out = _json(cli_runner, "shop", "--yes", "--no-git", "--no-install")
        assert out["data"]["stack"]["git"] is False
        assert out["data"]["stack"]["install"] is False
        assert out["data"]["command"].endswith("--no-git --no-install")

    def test_non_tty_does_not_prompt(self, cli_runner: CliRunner) -> None:
        out = _json(cli_runner, "shop")
        assert out["data"]["project_name"] == "shop"

    def test_quiet_prints_command(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "create", "shop", "--yes", "--backend", "convex"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "stackctl create shop --yes --backend convex"

    def test_human_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["create", "shop", "--yes", "--db-setup", "d1"])
        assert result.exit_code == 0
        assert "OK" in result.stdout
        assert "create_stack" in result.stdout
        assert "d1 requires runtime workers" in result.stdout


@pytest.mark.usefixtures("_isolated_project")
class TestCreateErrors:
    def test_conflict_exits_1(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["--json", "create", "shop", "--yes", "--backend", "convex", "--database", "mysql"]
        )
        assert result.exit_code == 1
        assert result.stdout == ""
        err = json.loads(result.stderr)
        assert err["ok"] is False
        assert err["error"]["code"] == "FLAG_CONFLICT"

    def test_unsupported_value(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "create", "shop", "--yes", "--backend", "rails"])
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "UNSUPPORTED_VALUE"

    def test_invalid_project_name(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "create", "bad|name", "--yes"])
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "INVALID_PROJECT_NAME"

    def test_human_error(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["create", "shop", "--yes", "--backend", "convex", "--database", "mysql"]
        )
        assert result.exit_code == 1
        assert "ERROR" in result.stderr
        assert "--backend convex conflicts with --database mysql" in result.stderr


@pytest.mark.usefixtures("_isolated_project")
class TestCreatePrompts:
    def test_all_defaults(self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        _interactive(monkeypatch)
        result = cli_runner.invoke(cli, ["create"], input="\n" * 30)
        assert result.exit_code == 0, result.output
        assert "Project name" in result.stdout
        assert "stackctl create my-stack-app --yes" in result.stdout

    def test_answers_cascade(self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        _interactive(monkeypatch)
        result = cli_runner.invoke(cli, ["create"], input="chat\nconvex\n" + "\n" * 30)
        assert result.exit_code == 0, result.output
        assert "stackctl create chat --yes --backend convex" in result.stdout
        assert "Runtime set to none" in result.stderr
        assert "adjusted:" in result.stdout

    def test_explicit_flags_are_not_prompted(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _interactive(monkeypatch)
        result = cli_runner.invoke(
            cli, ["create", "shop", "--backend", "express"], input="\n" * 30
        )
        assert result.exit_code == 0, result.output
        assert "Project name" not in result.stdout
        assert "Backend (" not in result.stdout
        assert "stackctl create shop --yes --backend express" in result.stdout

    def test_prompts_keep_explicit_flags(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _interactive(monkeypatch)
        result = cli_runner.invoke(
            cli, ["create", "shop", "--database", "postgres"], input="convex\n" + "\n" * 40
        )
        assert result.exit_code == 0, result.output
        assert "--database postgres" in result.stdout
        assert "--backend convex" not in result.stdout
        assert "Database set to" not in result.stderr

    def test_prompt_conflict_fails_before_prompting(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _interactive(monkeypatch)
        result = cli_runner.invoke(
            cli, ["create", "--backend", "convex", "--database", "mysql"], input="\n" * 30
        )
        assert result.exit_code == 1
        assert "Project name" not in result.stdout

    def test_cancel_aborts(self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        _interactive(monkeypatch)
        result = cli_runner.invoke(cli, ["create"], input="")
        assert result.exit_code == 1
        assert "stackctl create" not in result.stdout


class TestParseCommand:
    @pytest.mark.parametrize(
        "flags",
        [
            FlagInput(),
            FlagInput(project_name="chat", values={"backend": "convex"}),
            FlagInput(values={"db_setup": "d1"}),
            FlagInput(values={"frontend": ("next", "native-nativewind"), "addons": ("pwa",)}),
            FlagInput(values={"examples": (), "git": False, "package_manager": "pnpm"}),
        ],
        ids=["defaults", "convex", "d1", "sets", "mixed"],
    )
    def test_command_reproduces_stack(self, stack_service: StackService, flags: FlagInput) -> None:
        first = stack_service.create_stack(flags)
        assert first.ok
        parsed = parse_command(first.data["command"])
        assert parsed.yes is True
        second = stack_service.create_stack(parsed)
        assert second.data["stack"] == first.data["stack"]
        assert second.data["command"] == first.data["command"]

    def test_custom_prog(self) -> None:
        parsed = parse_command("npx stackctl create app --yes --no-git", prog="npx stackctl create")
        assert parsed.project_name == "app"
        assert parsed.values == {"git": False}

    def test_without_prog(self) -> None:
        parsed = parse_command("app --backend convex")
        assert parsed.values == {"backend": "convex"}
        assert parsed.yes is False

    @pytest.mark.usefixtures("_isolated_project")
    def test_cli_reruns_printed_command(self, cli_runner: CliRunner) -> None:
        command = _json(cli_runner, "app", "--yes", "--db-setup", "turso")["data"]["command"]
        args = shlex.split(command)[2:]
        again = _json(cli_runner, *args)
        assert again["data"]["command"] == command


@pytest.mark.usefixtures("_isolated_project")
class TestCreatePlugins:
    def test_local_plugin_sees_result(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        plugin_dir = tmp_path / ".stackctl" / "plugins"
        plugin_dir.mkdir(parents=True)
        (plugin_dir / "record_command.py").write_text(
            "from pathlib import Path\n"
            "from stackctl.plugins import hookimpl\n\n\n"
            "class RecordCommand:\n"
            "    @hookimpl\n"
            "    def post_resolve(self, project_name, stack, command):\n"
            "        Path('resolved.txt').write_text(command)\n"
        )
        result = cli_runner.invoke(cli, ["create", "shop", "--yes"])
        assert result.exit_code == 0
        assert (tmp_path / "resolved.txt").read_text() == "stackctl create shop --yes"

    def test_plugins_disabled_by_config(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        plugin_dir = tmp_path / ".stackctl" / "plugins"
        plugin_dir.mkdir(parents=True)
        (plugin_dir / "record_disabled.py").write_text(
            "from pathlib import Path\n"
            "from stackctl.plugins import hookimpl\n\n\n"
            "class RecordDisabled:\n"
            "    @hookimpl\n"
            "    def post_resolve(self, project_name, stack, command):\n"
            "        Path('resolved.txt').write_text(command)\n"
        )
        (tmp_path / "stackctl.toml").write_text("[plugins]\nenabled = false\n")
        result = cli_runner.invoke(cli, ["create", "shop", "--yes"])
        assert result.exit_code == 0
        assert not (tmp_path / "resolved.txt").exists()
