"""Command: print the compatibility rule table."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackCommand

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl rules
  stackctl -v rules
  stackctl --json rules""",
)
@click.pass_obj
def rules(app: AppContext) -> None:
    """List the compatibility rules in evaluation order."""
    from stackctl.config.logging import bind_command

    bind_command("rules")
    app.emit(app.stack_service().list_rules())
