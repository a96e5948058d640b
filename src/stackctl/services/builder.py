"""BuilderService — the interactive builder entry point.

A builder session is a share-link query string.  Every edit applies the
field's toggle semantics and runs an Adaptive resolve, so the session is
always consistent; corrections surface as per-field notes instead of
errors.  Option availability comes from the speculative check.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from stackctl.domain.command import EMPTY_SET
from stackctl.domain.fields import Field, lookup_field, parse_value
from stackctl.domain.rules import Change
from stackctl.domain.stack import PresetRegistry, StackState, toggle_value
from stackctl.domain.url_state import UrlStateError, decode_url_state
from stackctl.services.base import BaseService
from stackctl.services.resolver import Mode
from stackctl.services.result import ServiceResult, error_result

logger = logging.getLogger(__name__)

INVALID_URL_STATE = "INVALID_URL_STATE"
INVALID_EDIT = "INVALID_EDIT"
UNKNOWN_FIELD = "UNKNOWN_FIELD"
UNKNOWN_PRESET = "UNKNOWN_PRESET"


class BuilderService(BaseService):
    """Operations behind ``stackctl builder``."""

    def _presets(self) -> PresetRegistry:
        """Presets for this session, including any contributed by plugins."""
        if self._plugins is not None:
            return self._plugins.presets
        return PresetRegistry()

    def _load(self, op: str, query: str | None) -> StackState | ServiceResult:
        """Decode *query* and bring it to a resolved starting point."""
        try:
            state = decode_url_state(query or "")
        except UrlStateError as exc:
            return error_result(op, INVALID_URL_STATE, str(exc), query=query)
        outcome = self._run_resolver(op, state, Mode.ADAPTIVE)
        if isinstance(outcome, ServiceResult):
            return outcome
        return outcome.state

    def _lookup(self, op: str, name: str) -> Field | ServiceResult:
        field = lookup_field(name)
        if field is None:
            return error_result(op, UNKNOWN_FIELD, f"Unknown field: {name!r}", field=name)
        return field

    def show(self, query: str | None = None) -> ServiceResult:
        """Resolve a shared state and describe it."""
        op = "show_stack"
        try:
            raw = decode_url_state(query or "")
        except UrlStateError as exc:
            return error_result(op, INVALID_URL_STATE, str(exc), query=query)
        outcome = self._run_resolver(op, raw, Mode.ADAPTIVE)
        if isinstance(outcome, ServiceResult):
            return outcome
        return ServiceResult(
            ok=True,
            op=op,
            data=self._stack_payload(outcome.state, outcome.changes, outcome.notes),
            meta={"passes": outcome.passes},
        )

    def edit(self, edits: Sequence[tuple[str, str]], query: str | None = None) -> ServiceResult:
        """Apply ``(field, value)`` edits one at a time, resolving after each.

        Notes accumulate across edits; the changes list records every
        correction in the order it happened.
        """
        op = "edit_stack"
        loaded = self._load(op, query)
        if isinstance(loaded, ServiceResult):
            return loaded
        state = loaded

        changes: list[Change] = []
        notes: dict[str, list[str]] = {}
        for name, raw in edits:
            field = self._lookup(op, name)
            if isinstance(field, ServiceResult):
                return field
            try:
                value = parse_value(field, raw)
            except ValueError as exc:
                return error_result(op, INVALID_EDIT, str(exc), field=field.id, value=raw)
            if field.is_multi and value == EMPTY_SET:
                candidate = state.with_values(**{field.id: ()})
            elif not field.is_bool and value not in field.domain:
                choices = ", ".join(field.domain)
                message = f"Unsupported {field.flag} value: {value} (choose from: {choices})"
                return error_result(op, INVALID_EDIT, message, field=field.id, value=raw)
            else:
                candidate = toggle_value(state, field.id, value)
            outcome = self._run_resolver(op, candidate, Mode.ADAPTIVE)
            if isinstance(outcome, ServiceResult):
                return outcome
            state = outcome.state
            changes.extend(outcome.changes)
            for fid, msgs in outcome.notes.items():
                notes.setdefault(fid, []).extend(msgs)
            logger.debug("Builder edit %s=%s -> %d change(s)", field.id, raw, len(outcome.changes))

        return ServiceResult(ok=True, op=op, data=self._stack_payload(state, changes, notes))

    def options(self, field_name: str, query: str | None = None) -> ServiceResult:
        """List every value of a field with its speculative availability."""
        op = "stack_options"
        field = self._lookup(op, field_name)
        if isinstance(field, ServiceResult):
            return field
        loaded = self._load(op, query)
        if isinstance(loaded, ServiceResult):
            return loaded
        state = loaded

        current = state.get(field.id)
        options = []
        for value, available in self._resolver.option_states(state, field.id).items():
            selected = value in current if field.is_multi else value == current
            options.append({"value": value, "available": available, "selected": selected})
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "field": field.id,
                "label": field.label,
                "current": list(current) if field.is_multi else current,
                "options": options,
            },
        )

    def apply_preset(self, name: str, project_name: str | None = None) -> ServiceResult:
        """Resolve a named preset."""
        op = "apply_preset"
        presets = self._presets()
        if name not in presets:
            known = ", ".join(presets.names())
            message = f"Unknown preset: {name!r} (choose from: {known})"
            return error_result(op, UNKNOWN_PRESET, message, preset=name)
        state = presets.state(name, project_name=project_name)
        outcome = self._run_resolver(op, state, Mode.ADAPTIVE)
        if isinstance(outcome, ServiceResult):
            return outcome
        data = self._stack_payload(outcome.state, outcome.changes, outcome.notes)
        data["preset"] = name
        return ServiceResult(ok=True, op=op, data=data)

    def list_presets(self) -> ServiceResult:
        """List the available presets."""
        presets = self._presets()
        items = [
            {"id": name, "description": presets.describe(name)} for name in presets.names()
        ]
        return ServiceResult(ok=True, op="list_presets", data={"items": items, "count": len(items)})

