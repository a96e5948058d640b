"""Rich Console factory and theme for stackctl output.

Consoles render into a StringIO buffer so renderers keep the
``format_result() -> str`` contract.  In non-TTY environments (tests,
pipes) Rich leaves out color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

STACK_THEME = Theme(
    {
        "stack.ok": "bold green",
        "stack.error": "bold red",
        "stack.warning": "bold yellow",
        "stack.op": "bold cyan",
        "stack.key": "dim",
        "stack.value": "bold",
        "stack.changed": "yellow",
        "stack.command": "bold magenta",
        "stack.url": "underline blue",
        "stack.available": "green",
        "stack.unavailable": "dim red",
        "stack.tier": "cyan",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=STACK_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def format_value(value: object) -> str:
    """Display form of a field value (sets comma-joined, booleans lower-case)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) if value else "none"
    return str(value)
