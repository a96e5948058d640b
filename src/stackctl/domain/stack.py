"""StackState — the immutable configuration a resolve pass works on.

A state is created from the default snapshot overlaid with user input and
replaced (never mutated) after every edit.  Set-valued fields are stored
as tuples in canonical domain order so equality ignores selection order.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ValidationInfo, field_validator

from stackctl.domain.fields import (
    DEFAULT_PROJECT_NAME,
    FIELD_IDS,
    FILL_ORDER,
    default_for,
    get_field,
)

INVALID_NAME_CHARS = frozenset('<>:"|?*')
MAX_NAME_LENGTH = 255


class StackState(BaseModel):
    """One complete stack selection.

    Values are typed loosely (``str`` rather than a literal of the domain)
    so that out-of-domain input survives construction and can be reported
    or corrected by the resolver.
    """

    model_config = {"frozen": True}

    project_name: str = DEFAULT_PROJECT_NAME
    frontend: tuple[str, ...] = ("tanstack-router",)
    backend: str = "hono"
    runtime: str = "bun"
    database: str = "sqlite"
    orm: str = "drizzle"
    auth: bool = True
    api: str = "trpc"
    db_setup: str = "none"
    web_deploy: str = "none"
    addons: tuple[str, ...] = ("turborepo",)
    examples: tuple[str, ...] = ()
    package_manager: str = "bun"
    git: bool = True
    install: bool = True

    @field_validator("frontend", "addons", "examples", mode="after")
    @classmethod
    def _canonical_order(cls, value: tuple[str, ...], info: ValidationInfo) -> tuple[str, ...]:
        return get_field(info.field_name).normalize(value)

    def get(self, field_id: str) -> Any:
        """Return the value of *field_id*."""
        return getattr(self, field_id)

    def values(self) -> dict[str, Any]:
        """Return field id -> value for every registry field."""
        return {fid: getattr(self, fid) for fid in FIELD_IDS}

    def with_values(self, **updates: Any) -> StackState:
        """Return a copy with *updates* applied and set fields re-normalized."""
        if not updates:
            return self
        return StackState.model_validate({**self.model_dump(), **updates})

    def diff(self, other: StackState) -> list[str]:
        """Field ids whose values differ between *self* and *other*."""
        return [fid for fid in FIELD_IDS if getattr(self, fid) != getattr(other, fid)]


DEFAULT_STATE = StackState()


def build_state(
    overrides: Mapping[str, Any] | None = None,
    *,
    project_name: str | None = None,
) -> StackState:
    """Overlay *overrides* on the default snapshot.

    Every field not present in *overrides* receives its conditional
    default, computed in fill order so each default sees the values it
    depends on.
    """
    values: dict[str, Any] = dict(overrides or {})
    for fid in values:
        get_field(fid)
    for fid in FILL_ORDER:
        if fid not in values:
            values[fid] = default_for(fid, values)
    return StackState(project_name=project_name or DEFAULT_PROJECT_NAME, **values)


def toggle_value(state: StackState, field_id: str, value: Any) -> StackState:
    """Apply one builder click on *field_id* with *value*.

    Scalar fields replace their value.  Set fields toggle membership:
    selecting a member evicts the other members of its exclusive group,
    and deselecting the last member is refused when the field does not
    allow an empty selection.
    """
    field = get_field(field_id)
    current = state.get(field_id)
    if not field.is_multi:
        return state.with_values(**{field_id: value})

    if value in current:
        remaining = tuple(m for m in current if m != value)
        if not remaining and not field.allow_empty:
            return state
        return state.with_values(**{field_id: remaining})

    group = field.group_of(value)
    kept = tuple(m for m in current if group is None or m not in group)
    return state.with_values(**{field_id: (*kept, value)})


def validate_project_name(name: str) -> str | None:
    """Return an error message for an unusable project name, or None."""
    if not name or not name.strip():
        return "Project name cannot be empty"
    if name != name.strip():
        return "Project name cannot start or end with whitespace"
    if len(name) > MAX_NAME_LENGTH:
        return f"Project name cannot exceed {MAX_NAME_LENGTH} characters"
    if ".." in name:
        return "Project name cannot contain '..'"
    bad = sorted(INVALID_NAME_CHARS.intersection(name))
    if bad:
        return f"Project name contains invalid characters: {' '.join(bad)}"
    return None


# --- Presets ---

_BUILTIN_PRESETS: dict[str, tuple[str, dict[str, Any]]] = {
    "default": (
        "Standard web app with TanStack Router, Bun, Hono and SQLite",
        {},
    ),
    "convex-react": (
        "Reactive full-stack app with Convex and TanStack Router",
        {"backend": "convex", "frontend": ("tanstack-router",)},
    ),
    "native-app": (
        "React Native with Expo and SQLite database",
        {"frontend": ("native-nativewind",)},
    ),
    "api-only": (
        "Backend API with Hono and SQLite",
        {"frontend": ()},
    ),
    "full-featured": (
        "Web, native, Turso and addons",
        {
            "frontend": ("tanstack-router", "native-nativewind"),
            "db_setup": "turso",
            "addons": ("pwa", "biome", "husky", "tauri", "starlight", "turborepo"),
            "examples": ("todo", "ai"),
        },
    ),
}

# Read-only view; sessions copy it into a PresetRegistry.
PRESETS: Mapping[str, tuple[str, dict[str, Any]]] = MappingProxyType(_BUILTIN_PRESETS)


class PresetRegistry:
    """Named presets available to one session.

    Starts from the built-in :data:`PRESETS`; plugins add to their own
    registry instance, never to the module table.
    """

    def __init__(self, presets: Mapping[str, tuple[str, Mapping[str, Any]]] | None = None) -> None:
        source = PRESETS if presets is None else presets
        self._presets: dict[str, tuple[str, dict[str, Any]]] = {
            name: (description, dict(overrides))
            for name, (description, overrides) in source.items()
        }

    def __contains__(self, name: object) -> bool:
        return name in self._presets

    def __len__(self) -> int:
        return len(self._presets)

    def names(self) -> list[str]:
        return sorted(self._presets)

    def describe(self, name: str) -> str:
        return self._entry(name)[0]

    def overrides(self, name: str) -> dict[str, Any]:
        return dict(self._entry(name)[1])

    def register(self, name: str, description: str, overrides: Mapping[str, Any]) -> None:
        """Add a preset.

        Raises:
            ValueError: If *name* is already taken or an override names an
                unknown field.
        """
        if name in self._presets:
            msg = f"Preset {name!r} is already registered"
            raise ValueError(msg)
        unknown = sorted(k for k in overrides if k not in FIELD_IDS)
        if unknown:
            msg = f"Preset {name!r} overrides unknown fields: {', '.join(unknown)}"
            raise ValueError(msg)
        self._presets[name] = (description, dict(overrides))

    def state(self, name: str, *, project_name: str | None = None) -> StackState:
        """Build the unresolved state for preset *name*."""
        return build_state(self._entry(name)[1], project_name=project_name)

    def _entry(self, name: str) -> tuple[str, dict[str, Any]]:
        try:
            return self._presets[name]
        except KeyError:
            msg = f"Unknown preset: {name!r}"
            raise KeyError(msg) from None
