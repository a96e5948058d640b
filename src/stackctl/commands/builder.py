"""Command group: the share-link builder (show, edit, options, preset)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackGroup

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext


def _parse_edit(
    _ctx: click.Context, _param: click.Parameter, values: tuple[str, ...]
) -> list[tuple[str, str]]:
    """Split ``FIELD=VALUE`` arguments into pairs."""
    edits: list[tuple[str, str]] = []
    for item in values:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected FIELD=VALUE, got {item!r}")
        edits.append((name.strip(), value))
    return edits


_url_option = click.option(
    "--url",
    "query",
    default=None,
    help="Share link or query string to start from (defaults to the default stack).",
)

_BUILDER_EXAMPLES = """\
  stackctl builder show --url 'be=convex&au=true'
  stackctl builder edit be=convex
  stackctl builder edit --url 'db=postgres' dbs=neon add=pwa
  stackctl builder options database --url 'rt=workers'
  stackctl builder preset full-featured"""


@click.group(cls=StackGroup, examples=_BUILDER_EXAMPLES)
@click.pass_obj
def builder(app: AppContext) -> None:
    """Explore stacks through share links, with automatic corrections."""
    from stackctl.config.logging import bind_command

    bind_command("builder")


@builder.command(
    examples="""\
  stackctl builder show
  stackctl builder show --url 'be=convex'
  stackctl builder show --url 'https://stackctl.dev/new?rt=workers&db=mongodb'"""
)
@_url_option
@click.pass_obj
def show(app: AppContext, query: str | None) -> None:
    """Resolve a shared stack and show what was corrected."""
    app.emit(app.builder_service().show(query))


@builder.command(
    examples="""\
  stackctl builder edit be=convex
  stackctl builder edit --url 'be=convex' be=hono db=postgres
  stackctl builder edit frontend=native-nativewind
  stackctl builder edit addons=none"""
)
@click.argument("edits", nargs=-1, required=True, callback=_parse_edit)
@_url_option
@click.pass_obj
def edit(app: AppContext, edits: list[tuple[str, str]], query: str | None) -> None:
    """Apply FIELD=VALUE edits in order and print the new share link.

    Set fields (frontend, addons, examples) toggle the given member;
    ``FIELD=none`` clears them.
    """
    app.emit(app.builder_service().edit(edits, query))


@builder.command(
    examples="""\
  stackctl builder options orm
  stackctl builder options database --url 'rt=workers'
  stackctl builder options addons --url 'fe=native-nativewind'"""
)
@click.argument("field")
@_url_option
@click.pass_obj
def options(app: AppContext, field: str, query: str | None) -> None:
    """Show which values of FIELD can be selected from the current stack."""
    app.emit(app.builder_service().options(field, query))


@builder.command(
    examples="""\
  stackctl builder preset
  stackctl builder preset convex-react
  stackctl builder preset api-only --name my-api"""
)
@click.argument("name", required=False)
@click.option("--name", "project_name", default=None, help="Project name for the preset.")
@click.pass_obj
def preset(app: AppContext, name: str | None, project_name: str | None) -> None:
    """Apply a named preset, or list presets when NAME is omitted."""
    svc = app.builder_service()
    if name is None:
        app.emit(svc.list_presets())
    else:
        app.emit(svc.apply_preset(name, project_name))
