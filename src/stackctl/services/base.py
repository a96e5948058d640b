"""BaseService — shared foundation for the stack services.

Every service receives the settings at construction time and owns a
:class:`~stackctl.services.resolver.Resolver` built from them.  Services
never print; they return :class:`ServiceResult` and leave rendering to
the command layer.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from stackctl.domain.command import serialize_command
from stackctl.domain.rules import ErrorCode
from stackctl.domain.url_state import share_url
from stackctl.services.resolver import Mode, Resolution, Resolver, ResolverFault
from stackctl.services.result import ServiceResult, error_result

if TYPE_CHECKING:
    from stackctl.config.settings import StackSettings
    from stackctl.domain.rules import Change, ResolutionError
    from stackctl.domain.stack import StackState
    from stackctl.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class StackService(BaseService):
            def create_stack(self, flags: FlagInput) -> ServiceResult:
                outcome = self._run_resolver("create_stack", state, Mode.STRICT)
                ...
    """

    def __init__(
        self,
        settings: StackSettings,
        *,
        resolver: Resolver | None = None,
        plugins: PluginManager | None = None,
    ) -> None:
        self._settings = settings
        self._resolver = resolver or Resolver(max_passes=settings.resolver.max_passes)
        self._plugins = plugins

    @property
    def resolver(self) -> Resolver:
        return self._resolver

    def _run_resolver(
        self,
        op: str,
        state: StackState,
        mode: Mode,
        *,
        explicit: frozenset[str] = frozenset(),
    ) -> Resolution | ServiceResult:
        """Resolve *state*, turning errors and faults into a failed result."""
        try:
            resolution = self._resolver.resolve(state, mode, explicit=explicit)
        except ResolverFault as exc:
            logger.error("Resolver fault during %s: %s", op, exc)
            return error_result(
                op,
                ErrorCode.INTERNAL_RESOLVER_FAULT,
                str(exc),
                passes=exc.passes,
                still_firing=exc.last_fired,
            )
        if not resolution.ok:
            return self._errors_result(op, resolution.errors)
        return resolution

    @staticmethod
    def _errors_result(op: str, errors: Sequence[ResolutionError]) -> ServiceResult:
        first = errors[0]
        message = first.message
        if len(errors) > 1:
            message = f"{message} (+{len(errors) - 1} more)"
        fields = sorted({fid for err in errors for fid in err.fields})
        return error_result(
            op,
            first.code,
            message,
            errors=[
                {"code": str(err.code), "message": err.message, "fields": list(err.fields)}
                for err in errors
            ],
            fields=fields,
        )

    def _stack_payload(
        self,
        state: StackState,
        changes: Sequence[Change] = (),
        notes: Mapping[str, Sequence[str]] | None = None,
    ) -> dict[str, Any]:
        """Common data block for results that carry a resolved stack."""
        return {
            "project_name": state.project_name,
            "stack": state.model_dump(mode="json", exclude={"project_name"}),
            "command": serialize_command(state, prog=self._settings.command.prog),
            "url": share_url(state, self._settings.builder.base_url),
            "changes": [asdict(change) for change in changes],
            "notes": {fid: list(msgs) for fid, msgs in (notes or {}).items()},
        }

    def _dispatch_event(
        self,
        hook_name: str,
        payload: dict[str, Any],
        warnings: list[str],
    ) -> None:
        """Dispatch a lifecycle hook. No-op without a plugin manager.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        if self._plugins is None:
            return
        try:
            self._plugins.dispatch(hook_name, payload)
        except Exception:
            logger.debug("Hook dispatch failed for %s", hook_name, exc_info=True)
            warnings.append(f"Plugin hook {hook_name} failed")
