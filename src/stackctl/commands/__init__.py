"""Subcommand modules for stackctl.

Provides register_commands() which uses deferred imports to keep
``stackctl --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups and standalone commands on the root CLI group.

    1 group (builder) + 2 standalone commands (create, rules).
    """
    # --- Groups ---
    from stackctl.commands.builder import builder

    cli.add_command(builder)

    # --- Standalone commands ---
    from stackctl.commands.create import create
    from stackctl.commands.rules import rules

    cli.add_command(create)
    cli.add_command(rules)
