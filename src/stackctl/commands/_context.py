"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``.  Owns the resolver (validated once per process),
lazy plugin discovery, and centralized result emission (stdout/stderr
routing + exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from stackctl.config.settings import StackSettings
    from stackctl.plugins.manager import PluginManager
    from stackctl.services.builder import BuilderService
    from stackctl.services.resolver import Resolver
    from stackctl.services.result import ServiceResult
    from stackctl.services.stack import StackService


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    Subcommands access it via ``@click.pass_obj``.  Plugins are discovered
    on first use so ``--help`` and ``rules`` never import third-party code.
    """

    def __init__(self, settings: StackSettings) -> None:
        self.settings = settings
        self._plugins: PluginManager | None = None
        self._plugins_loaded = False

        # Configure structured logging
        from stackctl.config.logging import configure_logging

        configure_logging(
            verbose=settings.verbose,
            quiet=settings.quiet,
            log_json=settings.log_json,
        )

        # The rule table is checked for cycles before any command runs.
        from stackctl.infrastructure.rule_graph import RuleCycleError
        from stackctl.services.resolver import Resolver, default_rule_set

        try:
            rule_set = default_rule_set()
        except RuleCycleError as exc:
            raise click.ClickException(str(exc)) from exc
        self.resolver: Resolver = Resolver(rule_set, max_passes=settings.resolver.max_passes)

    @property
    def plugins(self) -> PluginManager | None:
        """The plugin manager (discovered lazily), or None when disabled."""
        if not self._plugins_loaded:
            self._plugins_loaded = True
            if self.settings.plugins.enabled:
                from stackctl.plugins.manager import PluginManager

                manager = PluginManager()
                manager.discover_and_load(
                    local_dir=self.settings.project_root / self.settings.plugins.local_dir
                )
                self._plugins = manager
        return self._plugins

    def stack_service(self) -> StackService:
        from stackctl.services.stack import StackService

        return StackService(self.settings, resolver=self.resolver, plugins=self.plugins)

    def builder_service(self) -> BuilderService:
        from stackctl.services.builder import BuilderService

        return BuilderService(self.settings, resolver=self.resolver, plugins=self.plugins)

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings are emitted to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
