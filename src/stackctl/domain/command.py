"""Command serializer — the minimal ``create`` command reproducing a state.

Each field is compared against its conditional default *given the final
state*; only mismatches become flags.  Parsing the result with the real
``create`` command and resolving it yields the same state again.
"""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from stackctl.domain.fields import FIELDS, default_for

if TYPE_CHECKING:
    from stackctl.domain.stack import StackState

DEFAULT_PROG = "stackctl create"
EMPTY_SET = "none"


def command_flags(state: StackState) -> list[str]:
    """Return the flag tokens needed to reproduce *state*, in registry order."""
    values = state.values()
    tokens: list[str] = []
    for field in FIELDS:
        value = values[field.id]
        if value == default_for(field.id, values):
            continue
        if field.is_bool:
            tokens.append(f"--{field.flag}" if value else f"--no-{field.flag}")
        elif field.is_multi:
            tokens += [f"--{field.flag}", ",".join(value) if value else EMPTY_SET]
        else:
            tokens += [f"--{field.flag}", str(value)]
    return tokens


def serialize_command(state: StackState, *, prog: str = DEFAULT_PROG) -> str:
    """Render the full non-interactive command line for *state*."""
    return f"{prog} {shlex.join([state.project_name, '--yes', *command_flags(state)])}"


def split_list(raw: str) -> tuple[str, ...]:
    """Parse a comma-joined set flag value (``none`` means empty)."""
    members = tuple(m.strip() for m in raw.split(",") if m.strip())
    if members == (EMPTY_SET,):
        return ()
    return members
