"""Pluggy hook specifications for stackctl.

One lifecycle hook fires after a stack resolves successfully, handing the
final configuration to downstream generators (templates, installers).
One setup-time hook lets plugins contribute builder presets.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("stackctl")
hookimpl = pluggy.HookimplMarker("stackctl")


class StackctlHookSpec:
    """Hook specifications for the stackctl plugin system."""

    @hookspec
    def post_resolve(
        self,
        project_name: str,
        stack: dict[str, Any],
        command: str,
    ) -> None:
        """Called after ``create`` resolves a stack without errors."""

    @hookspec
    def register_presets(self) -> dict[str, tuple[str, dict[str, Any]]] | None:
        """Return preset name -> (description, field overrides) mappings."""
