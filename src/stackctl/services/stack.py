"""StackService — the flag and prompt entry points to the resolver.

Flags are resolved in Strict mode: a conflict between two explicitly
supplied inputs (or an unsupported value) fails the whole run.  Prompt
answers are resolved the same way, with every flag and earlier answer
held fixed, so the next question only offers options that leave them
untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field

from stackctl.domain.fields import FIELD_IDS, get_field
from stackctl.domain.rules import Change
from stackctl.domain.stack import StackState, build_state, validate_project_name
from stackctl.services.base import BaseService
from stackctl.services.resolver import Mode, Resolution
from stackctl.services.result import ServiceResult, error_result

logger = logging.getLogger(__name__)

INVALID_PROJECT_NAME = "INVALID_PROJECT_NAME"
UNKNOWN_FIELD = "UNKNOWN_FIELD"


class FlagInput(BaseModel):
    """Parsed ``create`` flags.

    ``values`` holds only the fields the user supplied on the command
    line, so its keys are exactly the explicit inputs.
    """

    model_config = {"frozen": True}

    project_name: str | None = None
    yes: bool = False
    values: dict[str, Any] = Field(default_factory=dict)

    @property
    def explicit(self) -> frozenset[str]:
        return frozenset(self.values)


class StackService(BaseService):
    """Create-flow operations: flags, prompts, and the rule listing."""

    def resolve_flags(self, flags: FlagInput) -> Resolution | ServiceResult:
        """Strict-resolve the flag input.

        Returns the :class:`Resolution` on success, or a failed
        ``create_stack`` result naming the conflicting inputs.
        """
        op = "create_stack"
        if flags.project_name is not None:
            problem = validate_project_name(flags.project_name)
            if problem:
                return error_result(
                    op, INVALID_PROJECT_NAME, problem, project_name=flags.project_name
                )
        unknown = sorted(fid for fid in flags.values if fid not in FIELD_IDS)
        if unknown:
            message = f"Unknown field(s): {', '.join(unknown)}"
            return error_result(op, UNKNOWN_FIELD, message, fields=unknown)
        state = build_state(flags.values, project_name=flags.project_name)
        return self._run_resolver(op, state, Mode.STRICT, explicit=flags.explicit)

    def prompt_choices(
        self,
        state: StackState,
        field_id: str,
        locked: frozenset[str] | set[str] = frozenset(),
    ) -> list[Any]:
        """Values of *field_id* that would survive if chosen now.

        A value whose resolution would move any *locked* field is left out.
        """
        options = self._resolver.option_states(state, field_id, locked=locked)
        return [value for value, available in options.items() if available]

    def answer(
        self,
        state: StackState,
        field_id: str,
        value: Any,
        locked: frozenset[str] | set[str] = frozenset(),
    ) -> Resolution | ServiceResult:
        """Apply one prompt answer (replacing the field value) and re-resolve.

        *locked* fields, and a single-value answer itself, cannot be moved
        by the resolve; a rule that would do so fails with FLAG_CONFLICT.
        Members of a multi-value answer still drop out when incompatible.
        """
        updated = state.with_values(**{field_id: value})
        held = frozenset(locked)
        if not get_field(field_id).is_multi:
            held |= {field_id}
        return self._run_resolver("create_stack", updated, Mode.STRICT, explicit=held)

    def finish(
        self,
        state: StackState,
        *,
        changes: Sequence[Change] = (),
        notes: Mapping[str, Sequence[str]] | None = None,
        passes: int = 0,
    ) -> ServiceResult:
        """Validate the project name and hand the final stack to plugins."""
        op = "create_stack"
        problem = validate_project_name(state.project_name)
        if problem:
            return error_result(
                op, INVALID_PROJECT_NAME, problem, project_name=state.project_name
            )

        warnings: list[str] = []
        data = self._stack_payload(state, changes, notes)
        self._dispatch_event(
            "post_resolve",
            {
                "project_name": state.project_name,
                "stack": data["stack"],
                "command": data["command"],
            },
            warnings,
        )
        logger.debug("Resolved stack for %s in %d pass(es)", state.project_name, passes)
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings, meta={"passes": passes})

    def create_stack(self, flags: FlagInput) -> ServiceResult:
        """Non-interactive create: Strict resolve, then finish."""
        outcome = self.resolve_flags(flags)
        if isinstance(outcome, ServiceResult):
            return outcome
        return self.finish(
            outcome.state,
            changes=outcome.changes,
            notes=outcome.notes,
            passes=outcome.passes,
        )

    def list_rules(self) -> ServiceResult:
        """Describe the active rule table in evaluation order."""
        rule_set = self._resolver.rule_set
        items = [
            {
                "id": rule.id,
                "priority": rule.priority,
                "tier": rule.driver,
                "when": rule.describe_when(),
                "then": rule.describe_effect(),
                "note": rule.note,
                "enables": rule_set.graph.successors(rule.id),
            }
            for rule in rule_set
        ]
        return ServiceResult(
            ok=True,
            op="list_rules",
            data={"items": items, "count": len(items), "edges": rule_set.graph.edge_list()},
            meta={
                "edges": rule_set.graph.graph.number_of_edges(),
                "longest_chain": rule_set.graph.longest_chain(),
            },
        )
