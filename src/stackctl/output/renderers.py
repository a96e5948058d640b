"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from stackctl.domain.fields import FIELD_REGISTRY
from stackctl.output.console import create_console, format_value, get_output

if TYPE_CHECKING:
    from rich.console import Console

    from stackctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode.

    Stack results print only the reproducible command, list results
    print one id per line.
    """
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    if "command" in result.data:
        return str(result.data["command"])

    items = result.data.get("items") or result.data.get("options")
    if items and isinstance(items, list):
        return "\n".join(_extract_id(item) for item in items if _extract_id(item))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    """Extract an identifier from a list item (rules, presets, options)."""
    if isinstance(item, dict):
        for key in ("id", "value"):
            val = item.get(key)
            if val is not None:
                return format_value(val)
    return ""


def _label(field_id: str) -> str:
    field = FIELD_REGISTRY.get(field_id)
    return field.label if field else field_id


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK status line."""
    label = Text("OK", style="stack.ok")
    op = Text(f"  {result.op}", style="stack.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any, *, style: str = "") -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="stack.key")
    v = Text(format_value(value), style=style)
    console.print(k, v, sep="", end="")
    console.print()


def _render_warnings_inline(console: Console, result: ServiceResult) -> None:
    for warning in result.warnings:
        console.print(Text(f"  warning: {warning}", style="stack.warning"))


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="stack.error")
    op = Text(f"  {result.op}", style="stack.op")
    console.print(label, op, Text(": "), msg, sep="")

    if not err:
        return
    # Several resolution errors: list each one, not only the summary.
    for extra in err.detail.get("errors", [])[1:]:
        console.print(f"  {extra.get('code')}: {extra.get('message')}")
    if verbose and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            if k == "errors":
                continue
            console.print(f"    {k}: {v}")


# ── Stack renderers ───────────────────────────────────────────────────


def _render_stack(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render create_stack / show_stack / edit_stack / apply_preset results."""
    data = result.data
    _status_line(console, result)
    _field(console, "project", data.get("project_name", ""), style="stack.value")

    changed = {c.get("field") for c in data.get("changes", [])}
    stack: dict[str, Any] = data.get("stack", {})
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("  Field", no_wrap=True)
    table.add_column("Value")
    for fid, value in stack.items():
        style = "stack.changed" if fid in changed else ""
        table.add_row(f"  {_label(fid)}", Text(format_value(value), style=style))
    console.print(table)

    changes = data.get("changes", [])
    if changes:
        console.print()
        console.print(Text("  adjusted:", style="stack.warning"))
        for change in changes:
            line = f"    [{change.get('category')}] {change.get('message')}"
            if verbose:
                line += f"  (rule {change.get('rule')})"
            console.print(Text(line, style="stack.changed"))

    console.print()
    _field(console, "command", data.get("command", ""), style="stack.command")
    if data.get("url"):
        _field(console, "url", data["url"], style="stack.url")
    _render_warnings_inline(console, result)
    if verbose and result.meta:
        console.print(Text("  meta:", style="dim"))
        for k, v in result.meta.items():
            console.print(f"    {k}: {v}")


def _render_options(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render stack_options as a value/availability table."""
    data = result.data
    _status_line(console, result)
    _field(console, "field", data.get("label", data.get("field", "")))
    _field(console, "current", data.get("current"), style="stack.value")

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("  Option", no_wrap=True)
    table.add_column("Status")
    for option in data.get("options", []):
        value = format_value(option.get("value"))
        if option.get("selected"):
            status = Text("selected", style="stack.value")
        elif option.get("available"):
            status = Text("available", style="stack.available")
        else:
            status = Text("incompatible", style="stack.unavailable")
        table.add_row(f"  {value}", status)
    console.print(table)


def _render_rules(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render list_rules as a priority-ordered table."""
    _status_line(console, result)
    _field(console, "count", result.data.get("count", 0))

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("  #", justify="right")
    table.add_column("Rule", no_wrap=True)
    table.add_column("Tier", style="stack.tier")
    table.add_column("When")
    table.add_column("Then")
    if verbose:
        table.add_column("Enables")
    for item in result.data.get("items", []):
        row = [
            f"  {item.get('priority')}",
            str(item.get("id", "")),
            str(item.get("tier", "")),
            str(item.get("when", "")),
            str(item.get("then", "")),
        ]
        if verbose:
            row.append(", ".join(item.get("enables", [])))
        table.add_row(*row)
    console.print(table)


def _render_presets(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render list_presets."""
    _status_line(console, result)
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("  Preset", no_wrap=True)
    table.add_column("Description")
    for item in result.data.get("items", []):
        table.add_row(f"  {item.get('id')}", str(item.get("description", "")))
    console.print(table)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line plus one line per data key."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)


_OP_RENDERERS = {
    "create_stack": _render_stack,
    "show_stack": _render_stack,
    "edit_stack": _render_stack,
    "apply_preset": _render_stack,
    "stack_options": _render_options,
    "list_rules": _render_rules,
    "list_presets": _render_presets,
}
