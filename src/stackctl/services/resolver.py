"""Resolver — the fixpoint engine shared by every entry point.

``resolve(state, mode)`` first closes every field over its domain, then
applies the priority-ordered rule table in passes until a pass changes
nothing.  Two operating contracts:

* **Strict** (flags, prompt answers): an out-of-domain value, or a rule
  that would change a field the user supplied explicitly, stops
  resolution with an error naming the conflicting inputs.  Fields the
  user did not supply follow their drivers.
* **Adaptive** (builder): never fails.  Dependent fields are
  moved toward their registry default and every correction is recorded
  as a :class:`~stackctl.domain.rules.Change` plus a per-field note.

Exceeding the pass guard raises :class:`ResolverFault`: it means the rule
table itself is wrong, never that the user's input is.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from stackctl.domain.fields import FILL_ORDER, Field, default_for, get_field
from stackctl.domain.rules import (
    DEFAULT_RULES,
    Change,
    ErrorCode,
    ResolutionError,
    Rule,
    dependency_edges,
)
from stackctl.domain.stack import StackState, toggle_value
from stackctl.infrastructure.rule_graph import RuleGraph

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 10


class Mode(StrEnum):
    """Resolver operating contract."""

    STRICT = "strict"
    ADAPTIVE = "adaptive"


class ResolverFault(Exception):
    """The fixpoint did not converge within the pass guard."""

    def __init__(self, passes: int, last_fired: list[str]) -> None:
        self.passes = passes
        self.last_fired = last_fired
        super().__init__(
            f"Resolver did not converge after {passes} passes "
            f"(still firing: {', '.join(last_fired) or 'none'})"
        )


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolve call.

    On failure ``state`` is the untouched input and ``errors`` is
    non-empty; no partially patched state is ever returned.
    """

    state: StackState
    changes: tuple[Change, ...] = ()
    notes: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    errors: tuple[ResolutionError, ...] = ()
    passes: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


class RuleSet:
    """A validated, priority-ordered rule table with its dependency graph."""

    def __init__(self, rules: Sequence[Rule] | None = None) -> None:
        ordered = sorted(DEFAULT_RULES if rules is None else rules, key=lambda r: r.priority)
        seen: set[str] = set()
        for rule in ordered:
            if rule.id in seen:
                msg = f"Duplicate rule id: {rule.id}"
                raise ValueError(msg)
            seen.add(rule.id)
        self._rules = tuple(ordered)
        self._by_id = {rule.id: rule for rule in ordered}
        self.graph = RuleGraph(
            ((rule.id, rule.priority) for rule in ordered),
            dependency_edges(ordered),
        )
        self.graph.check_acyclic()
        logger.debug(
            "Rule set loaded: %d rules, %d dependency edges",
            len(self._rules),
            self.graph.graph.number_of_edges(),
        )

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def get(self, rule_id: str) -> Rule:
        return self._by_id[rule_id]


@functools.cache
def default_rule_set() -> RuleSet:
    """The built-in rule set, validated once per process."""
    return RuleSet()


def _fmt(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, tuple):
        return ",".join(value) if value else "none"
    return str(value)


def _flag_input(fld: Field, value: Any) -> str:
    if fld.is_bool:
        return f"--{fld.flag}" if value else f"--no-{fld.flag}"
    return f"--{fld.flag} {_fmt(value)}"


class Resolver:
    """Runs a :class:`RuleSet` to a fixpoint over a :class:`StackState`."""

    def __init__(
        self,
        rule_set: RuleSet | None = None,
        *,
        max_passes: int = DEFAULT_MAX_PASSES,
    ) -> None:
        self.rule_set = rule_set if rule_set is not None else default_rule_set()
        self.max_passes = max_passes

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    def resolve(
        self,
        state: StackState,
        mode: Mode = Mode.ADAPTIVE,
        *,
        explicit: frozenset[str] | set[str] = frozenset(),
    ) -> Resolution:
        """Resolve *state* to a fixpoint.

        Args:
            state: Raw configuration to resolve.
            mode: Strict (fail on conflict) or Adaptive (auto-correct).
            explicit: Field ids the user supplied directly; only
                consulted in Strict mode.
        """
        strict = mode is Mode.STRICT
        values = state.values()
        changes: list[Change] = []
        notes: dict[str, list[str]] = {}

        errors = self._close_domains(values, strict=strict, changes=changes, notes=notes)
        if errors:
            return Resolution(state=state, errors=tuple(errors))

        # Explicit inputs each value traces back to; empty for defaults.
        origin: dict[str, frozenset[str]] = {
            fid: frozenset({fid}) if fid in explicit else frozenset() for fid in values
        }
        fired: list[str] = []
        for pass_no in range(1, self.max_passes + 1):
            fired = []
            deferred: ResolutionError | None = None
            for rule in self.rule_set:
                if not rule.matches(values):
                    continue
                delta = {
                    fid: value
                    for fid, value in rule.patch(values).items()
                    if values[fid] != value
                }
                if not delta:
                    continue
                roots = frozenset().union(*(origin[fid] for fid in rule.when))
                if strict:
                    overridden = [fid for fid in delta if fid in explicit]
                    if overridden:
                        error = self._conflict(rule, overridden, values, delta, roots)
                        if not roots - set(overridden):
                            # A defaulted driver may still be moved by a later rule.
                            deferred = deferred or error
                            continue
                        logger.debug("Strict conflict from %s: %s", rule.id, error.message)
                        return Resolution(state=state, errors=(error,), passes=pass_no)
                values.update(delta)
                fired.append(rule.id)
                for fid in delta:
                    if fid not in explicit:
                        origin[fid] = roots
                for fid, value in delta.items():
                    label = get_field(fid).label
                    changes.append(
                        Change(
                            category=rule.driver,
                            field=fid,
                            rule=rule.id,
                            message=f"{label} set to {_fmt(value)}: {rule.note}",
                        )
                    )
                    notes.setdefault(fid, []).append(rule.note)
                logger.debug("Rule %s fired (pass %d): %s", rule.id, pass_no, delta)
            if not fired:
                if deferred is not None:
                    logger.debug("Strict conflict with a default: %s", deferred.message)
                    return Resolution(state=state, errors=(deferred,), passes=pass_no)
                return Resolution(
                    state=state.with_values(**values),
                    changes=tuple(changes),
                    notes={fid: tuple(msgs) for fid, msgs in notes.items()},
                    passes=pass_no,
                )
        raise ResolverFault(self.max_passes, fired)

    def _close_domains(
        self,
        values: dict[str, Any],
        *,
        strict: bool,
        changes: list[Change],
        notes: dict[str, list[str]],
    ) -> list[ResolutionError]:
        """Report (Strict) or replace (Adaptive) out-of-domain values in place."""
        errors: list[ResolutionError] = []
        for fid in FILL_ORDER:
            fld = get_field(fid)
            value = values[fid]
            if fld.in_domain(value):
                continue
            if strict:
                errors.append(
                    ResolutionError(
                        code=ErrorCode.UNSUPPORTED_VALUE,
                        message=self._unsupported_message(fld, value),
                        fields=(fid,),
                    )
                )
                continue
            replacement = self._closest_legal(fld, value, values)
            values[fid] = replacement
            note = f"{_fmt(value)} is not a supported {fld.label.lower()} value"
            changes.append(
                Change(
                    category="domain",
                    field=fid,
                    rule="domain",
                    message=f"{fld.label} set to {_fmt(replacement)}: {note}",
                )
            )
            notes.setdefault(fid, []).append(note)
        return errors

    @staticmethod
    def _closest_legal(fld: Field, value: Any, values: Mapping[str, Any]) -> Any:
        if fld.is_multi and isinstance(value, tuple):
            kept: list[str] = []
            for member in value:
                if member not in fld.domain:
                    continue
                group = fld.group_of(member)
                if group is not None and not group.isdisjoint(kept):
                    continue
                kept.append(member)
            candidate = fld.normalize(tuple(kept))
            if fld.in_domain(candidate):
                return candidate
        return default_for(fld.id, values)

    @staticmethod
    def _unsupported_message(fld: Field, value: Any) -> str:
        choices = ", ".join(_fmt(v) for v in fld.domain)
        if fld.is_multi and isinstance(value, tuple):
            unknown = [m for m in value if m not in fld.domain]
            if unknown:
                listed = ", ".join(unknown)
                return f"Unsupported {fld.flag} value(s): {listed} (choose from: {choices})"
            if fld.groups:
                return f"At most one {fld.flag} per group may be selected: {_fmt(value)}"
            return f"{fld.label} cannot be empty"
        return f"Unsupported {fld.flag} value: {_fmt(value)} (choose from: {choices})"

    @staticmethod
    def _conflict(
        rule: Rule,
        overridden: list[str],
        values: Mapping[str, Any],
        delta: Mapping[str, Any],
        roots: frozenset[str],
    ) -> ResolutionError:
        """Blame the explicit inputs behind *rule*, or its defaulted drivers.

        Defaulted fields are named in the message but never listed in
        ``fields``.
        """
        inputs = [fid for fid in FILL_ORDER if fid in roots and fid not in overridden]
        if inputs:
            driving = " ".join(_flag_input(get_field(fid), values[fid]) for fid in inputs)
        else:
            drivers = [fid for fid in rule.when if fid not in overridden]
            driving = "default " + " ".join(
                _flag_input(get_field(fid), values[fid]) for fid in drivers
            )
        target = " ".join(_flag_input(get_field(fid), values[fid]) for fid in overridden)
        required = ", ".join(f"{fid}={_fmt(delta[fid])}" for fid in overridden)
        return ResolutionError(
            code=ErrorCode.FLAG_CONFLICT,
            message=f"{driving} conflicts with {target}: {rule.note} (requires {required})",
            fields=(*inputs, *overridden),
        )

    # ------------------------------------------------------------------
    # Speculative check
    # ------------------------------------------------------------------

    def is_compatible(
        self,
        state: StackState,
        field_id: str,
        value: Any,
        *,
        locked: frozenset[str] | set[str] = frozenset(),
    ) -> bool:
        """Would selecting *value* for *field_id* survive resolution?

        With no *locked* fields the candidate is resolved Adaptively.
        Otherwise it is resolved Strictly with *locked* (and, for a
        single-value field, *field_id* itself) held fixed, so a value that
        would move any of them is incompatible.

        Values already selected are compatible by definition.  Nothing is
        committed; *state* is left untouched.
        """
        fld = get_field(field_id)
        current = state.get(field_id)
        if (fld.is_multi and value in current) or (not fld.is_multi and current == value):
            return True
        candidate = toggle_value(state, field_id, value)
        if locked:
            held = frozenset(locked) if fld.is_multi else frozenset(locked) | {field_id}
            result = self.resolve(candidate, Mode.STRICT, explicit=held)
            if not result.ok:
                return False
        else:
            result = self.resolve(candidate, Mode.ADAPTIVE)
        final = result.state.get(field_id)
        return value in final if fld.is_multi else final == value

    def option_states(
        self,
        state: StackState,
        field_id: str,
        *,
        locked: frozenset[str] | set[str] = frozenset(),
    ) -> dict[Any, bool]:
        """Map every domain value of *field_id* to its compatibility."""
        return {
            value: self.is_compatible(state, field_id, value, locked=locked)
            for value in get_field(field_id).domain
        }
