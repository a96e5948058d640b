"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from stackctl.config.logging import bind_command, configure_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    stack = logging.getLogger("stackctl")
    stack_level = stack.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    stack.setLevel(stack_level)
    structlog.contextvars.clear_contextvars()


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("stackctl").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_default_is_warning(self) -> None:
        configure_logging()
        assert logging.getLogger("stackctl").level == logging.WARNING

    def test_quiet_shows_errors_only(self) -> None:
        configure_logging(quiet=True)
        assert logging.getLogger("stackctl").level == logging.ERROR

    def test_verbose_wins_over_quiet(self) -> None:
        configure_logging(verbose=True, quiet=True)
        assert logging.getLogger("stackctl").level == logging.DEBUG

    def test_json_mode_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("stackctl.services.resolver").debug("Rule %s fired", "convex-stack")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "Rule convex-stack fired"
        assert parsed["level"] == "debug"
        assert parsed["logger"] == "stackctl.services.resolver"
        assert "timestamp" in parsed

    def test_bound_command_is_attached(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_json=True)
        bind_command("create")
        logging.getLogger("stackctl.test").warning("plugin skipped")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["command"] == "create"

    def test_debug_hidden_by_default(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_json=True)
        logging.getLogger("stackctl.test").debug("hidden")
        assert capfd.readouterr().err == ""
