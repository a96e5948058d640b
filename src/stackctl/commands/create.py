"""Command: resolve a stack from flags and prompts."""

from __future__ import annotations

import shlex
import sys
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import click

from stackctl.domain.command import DEFAULT_PROG, EMPTY_SET, split_list
from stackctl.domain.fields import DEFAULT_PROJECT_NAME, FIELDS, FILL_ORDER, Field, get_field
from stackctl.domain.rules import Change, ErrorCode
from stackctl.domain.stack import validate_project_name
from stackctl.services.result import ServiceResult
from stackctl.services.stack import FlagInput

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext
    from stackctl.services.stack import StackService


def _is_interactive(app: AppContext) -> bool:
    """Return True when interactive prompts should fire.

    Prompts require: no ``--no-interact``, no ``--json``, and stdin is a TTY.
    """
    return not app.settings.no_interact and not app.settings.json_output and sys.stdin.isatty()


def _fmt(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, tuple):
        return ",".join(value) if value else EMPTY_SET
    return str(value)


def _field_option(field: Field) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Build the ``create`` option for one registry field."""
    if field.is_bool:
        return click.option(
            f"--{field.flag}/--no-{field.flag}",
            field.id,
            default=None,
            help=f"{field.label}.",
        )
    choices = ", ".join(field.domain)
    if field.is_multi:
        return click.option(
            f"--{field.flag}",
            field.id,
            multiple=True,
            metavar="LIST",
            help=f"{field.label}, comma-separated or repeated; '{EMPTY_SET}' for none "
            f"({choices}).",
        )
    return click.option(
        f"--{field.flag}",
        field.id,
        default=None,
        metavar="VALUE",
        help=f"{field.label} ({choices}).",
    )


def _field_options(func: Callable[..., Any]) -> Callable[..., Any]:
    for field in reversed(FIELDS):
        func = _field_option(field)(func)
    return func


def _flag_values(params: Mapping[str, Any]) -> dict[str, Any]:
    """Collect the fields the user actually supplied."""
    values: dict[str, Any] = {}
    for field in FIELDS:
        raw = params.get(field.id)
        if field.is_multi:
            if raw:
                values[field.id] = tuple(m for chunk in raw for m in split_list(chunk))
        elif raw is not None:
            values[field.id] = raw
    return values


def _validate_name(value: str) -> str:
    problem = validate_project_name(value)
    if problem:
        raise click.BadParameter(problem)
    return value


def _ask(field: Field, choices: list[Any], current: Any) -> Any:
    """Prompt for one field, offering only *choices*."""
    if field.is_bool:
        return click.confirm(field.label, default=current)
    if field.is_multi:

        def _members(raw: str) -> tuple[str, ...]:
            members = split_list(raw)
            unavailable = [m for m in members if m not in choices]
            if unavailable:
                msg = f"Not available here: {', '.join(unavailable)}"
                raise click.BadParameter(msg)
            if not field.in_domain(field.normalize(members)):
                msg = f"At most one {field.label.lower()} per group, or pick at least one"
                raise click.BadParameter(msg)
            return members

        hint = ", ".join(choices) if choices else EMPTY_SET
        return click.prompt(
            f"{field.label} [{hint}]",
            default=_fmt(current),
            value_proc=_members,
        )
    return click.prompt(
        field.label,
        type=click.Choice([str(c) for c in choices]),
        default=current if current in choices else choices[0],
    )


def _prompt_stack(svc: StackService, flags: FlagInput) -> ServiceResult:
    """Strict-resolve the flags, then prompt for every field left open."""
    outcome = svc.resolve_flags(flags)
    if isinstance(outcome, ServiceResult):
        return outcome
    state = outcome.state
    changes: list[Change] = list(outcome.changes)
    notes: dict[str, list[str]] = {fid: list(msgs) for fid, msgs in outcome.notes.items()}
    passes = outcome.passes

    if flags.project_name is None:
        name = click.prompt(
            "Project name",
            default=DEFAULT_PROJECT_NAME,
            value_proc=_validate_name,
        )
        state = state.with_values(project_name=name)

    locked = set(flags.explicit)
    for fid in FILL_ORDER:
        if fid in locked:
            continue
        field = get_field(fid)
        choices = svc.prompt_choices(state, fid, locked)
        if len(choices) <= 1 and not field.is_multi:
            locked.add(fid)
            continue
        while True:
            value = _ask(field, choices, state.get(fid))
            answered = svc.answer(state, fid, value, locked)
            if not isinstance(answered, ServiceResult):
                break
            if answered.error is None or answered.error.code != ErrorCode.FLAG_CONFLICT:
                return answered
            click.echo(f"  {answered.error.message}", err=True)
        locked.add(fid)
        for change in answered.changes:
            click.echo(f"  {change.message}", err=True)
        state = answered.state
        changes.extend(answered.changes)
        for key, msgs in answered.notes.items():
            notes.setdefault(key, []).extend(msgs)
        passes = max(passes, answered.passes)

    return svc.finish(state, changes=changes, notes=notes, passes=passes)


def parse_command(text: str, *, prog: str = DEFAULT_PROG) -> FlagInput:
    """Parse a serialized ``create`` command line back into flag input.

    The leading *prog* words are dropped when present.

    Raises:
        click.UsageError: If the arguments do not parse.
    """
    args = shlex.split(text)
    prefix = shlex.split(prog)
    if args[: len(prefix)] == prefix:
        args = args[len(prefix) :]
    with create.make_context("create", args) as ctx:
        params = dict(ctx.params)
    return FlagInput(
        project_name=params.get("project_name"),
        yes=bool(params.get("yes")),
        values=_flag_values(params),
    )


_CREATE_EXAMPLES = """\
Examples:
  stackctl create my-app --yes
  stackctl create my-app --yes --backend convex
  stackctl create my-app --yes --database postgres --orm drizzle --db-setup neon
  stackctl create my-app --yes --frontend next,native-nativewind --addons pwa,biome
  stackctl create my-app --yes --runtime workers --no-install"""


@click.command(epilog=_CREATE_EXAMPLES)
@click.argument("project_name", required=False)
@click.option("-y", "--yes", is_flag=True, help="Use defaults for every field not given.")
@_field_options
@click.pass_obj
def create(app: AppContext, project_name: str | None, yes: bool, **params: Any) -> None:
    """Resolve a compatible stack and print the command that reproduces it.

    Flags are checked strictly: two explicit flags that cannot be used
    together fail the run.  Fields you leave out follow the flags you
    gave, and are prompted for when running interactively.
    """
    from stackctl.config.logging import bind_command

    bind_command("create")
    flags = FlagInput(project_name=project_name, yes=yes, values=_flag_values(params))
    svc = app.stack_service()
    if yes or not _is_interactive(app):
        app.emit(svc.create_stack(flags))
    else:
        app.emit(_prompt_stack(svc, flags))
