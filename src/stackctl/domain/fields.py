"""Field registry — static metadata for every stack configuration field.

Each field declares its value domain, arity, and how its default is
derived.  Several defaults are conditional (the initial ORM depends on
the selected database), so callers ask :func:`default_for` instead of
reading a static value.  The rule table uses the same accessor to
"reset a field to its default" without hardcoding values.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

# --- Value domains ---

WEB_FRONTENDS = (
    "tanstack-router",
    "react-router",
    "tanstack-start",
    "next",
    "nuxt",
    "svelte",
    "solid",
)
NATIVE_FRONTENDS = ("native-nativewind", "native-unistyles")
BACKENDS = ("hono", "next", "elysia", "express", "fastify", "convex", "none")
RUNTIMES = ("bun", "node", "workers", "none")
DATABASES = ("sqlite", "postgres", "mysql", "mongodb", "none")
ORMS = ("drizzle", "prisma", "mongoose", "none")
APIS = ("trpc", "orpc", "none")
DB_SETUPS = (
    "turso",
    "d1",
    "neon",
    "prisma-postgres",
    "mongodb-atlas",
    "supabase",
    "docker",
    "none",
)
WEB_DEPLOYS = ("workers", "none")
ADDONS = (
    "pwa",
    "tauri",
    "starlight",
    "biome",
    "husky",
    "turborepo",
    "ultracite",
    "fumadocs",
    "oxlint",
)
EXAMPLES = ("todo", "ai")
PACKAGE_MANAGERS = ("npm", "pnpm", "bun")
BOOLEANS = (True, False)

# Backends that ship their own data layer (or no server at all).
SELF_CONTAINED_BACKENDS = frozenset({"convex", "none"})
SERVER_BACKENDS = tuple(b for b in BACKENDS if b not in SELF_CONTAINED_BACKENDS)

# ORMs usable with each database, and the one picked when none is given.
DATABASE_ORMS: dict[str, tuple[str, ...]] = {
    "sqlite": ("drizzle", "prisma"),
    "postgres": ("drizzle", "prisma"),
    "mysql": ("drizzle", "prisma"),
    "mongodb": ("prisma", "mongoose"),
}
DEFAULT_ORM: dict[str, str] = {
    "none": "none",
    "sqlite": "drizzle",
    "postgres": "prisma",
    "mysql": "drizzle",
    "mongodb": "prisma",
}

# Frontends served by an oRPC client rather than tRPC.
ORPC_FRONTENDS = frozenset({"nuxt", "svelte", "solid"})

DEFAULT_PROJECT_NAME = "my-stack-app"


class Arity(StrEnum):
    """Whether a field holds one value or a set of values."""

    SINGLE = "single"
    MULTI = "multi"


@dataclass(frozen=True)
class Field:
    """Static metadata for one configuration field.

    Attributes:
        id: Attribute name on :class:`~stackctl.domain.stack.StackState`.
        label: Human-readable name used in prompts and tables.
        flag: Long CLI option name without the leading dashes.
        url_key: Short query-string key used by the builder share link.
        domain: Legal values, in canonical order.
        arity: Single value or set of values.
        default: Static default (the value in the default snapshot).
        defaults: Every value :func:`default_for` can return.
        allow_empty: Whether an empty set is a legal selection.
        groups: Mutually exclusive member groups for set fields.
        default_rule: Conditional default, given the other field values.
    """

    id: str
    label: str
    flag: str
    url_key: str
    domain: tuple[Any, ...]
    arity: Arity
    default: Any
    defaults: tuple[Any, ...] = ()
    allow_empty: bool = True
    groups: tuple[frozenset[str], ...] = ()
    default_rule: Callable[[Mapping[str, Any]], Any] | None = None

    @property
    def is_multi(self) -> bool:
        return self.arity is Arity.MULTI

    @property
    def is_bool(self) -> bool:
        return self.domain == BOOLEANS

    def in_domain(self, value: Any) -> bool:
        """Return True when *value* is a legal value for this field."""
        if self.is_multi:
            if not isinstance(value, tuple):
                return False
            if not value and not self.allow_empty:
                return False
            if any(member not in self.domain for member in value):
                return False
            return all(len(group.intersection(value)) <= 1 for group in self.groups)
        if self.is_bool:
            return isinstance(value, bool)
        return value in self.domain

    def normalize(self, value: Any) -> Any:
        """Canonicalize a set value into a de-duplicated, domain-ordered tuple.

        Unknown members are kept (after the known ones) so domain checks
        can still report them.
        """
        if not self.is_multi:
            return value
        members = set(value)
        known = tuple(m for m in self.domain if m in members)
        unknown = tuple(sorted(str(m) for m in members if m not in self.domain))
        return known + unknown

    def group_of(self, member: str) -> frozenset[str] | None:
        """Return the exclusive group containing *member*, if any."""
        for group in self.groups:
            if member in group:
                return group
        return None


# --- Conditional defaults ---


def _runtime_default(state: Mapping[str, Any]) -> str:
    return "none" if state.get("backend") in SELF_CONTAINED_BACKENDS else "bun"


def _database_default(state: Mapping[str, Any]) -> str:
    return "none" if state.get("backend") in SELF_CONTAINED_BACKENDS else "sqlite"


def _orm_default(state: Mapping[str, Any]) -> str:
    return DEFAULT_ORM.get(state.get("database", "sqlite"), "drizzle")


def _auth_default(state: Mapping[str, Any]) -> bool:
    return state.get("database") != "none"


def _api_default(state: Mapping[str, Any]) -> str:
    if state.get("backend") in SELF_CONTAINED_BACKENDS:
        return "none"
    if ORPC_FRONTENDS.intersection(state.get("frontend", ())):
        return "orpc"
    return "trpc"


def _examples_default(state: Mapping[str, Any]) -> tuple[str, ...]:
    return ("todo",) if state.get("backend") == "convex" else ()


FIELDS: tuple[Field, ...] = (
    Field(
        id="frontend",
        label="Frontend",
        flag="frontend",
        url_key="fe",
        domain=WEB_FRONTENDS + NATIVE_FRONTENDS,
        arity=Arity.MULTI,
        default=("tanstack-router",),
        groups=(frozenset(WEB_FRONTENDS), frozenset(NATIVE_FRONTENDS)),
    ),
    Field(
        id="backend",
        label="Backend",
        flag="backend",
        url_key="be",
        domain=BACKENDS,
        arity=Arity.SINGLE,
        default="hono",
    ),
    Field(
        id="runtime",
        label="Runtime",
        flag="runtime",
        url_key="rt",
        domain=RUNTIMES,
        arity=Arity.SINGLE,
        default="bun",
        defaults=("bun", "none"),
        default_rule=_runtime_default,
    ),
    Field(
        id="database",
        label="Database",
        flag="database",
        url_key="db",
        domain=DATABASES,
        arity=Arity.SINGLE,
        default="sqlite",
        defaults=("sqlite", "none"),
        default_rule=_database_default,
    ),
    Field(
        id="orm",
        label="ORM",
        flag="orm",
        url_key="orm",
        domain=ORMS,
        arity=Arity.SINGLE,
        default="drizzle",
        defaults=("drizzle", "prisma", "none"),
        default_rule=_orm_default,
    ),
    Field(
        id="auth",
        label="Authentication",
        flag="auth",
        url_key="au",
        domain=BOOLEANS,
        arity=Arity.SINGLE,
        default=True,
        defaults=(True, False),
        default_rule=_auth_default,
    ),
    Field(
        id="api",
        label="API",
        flag="api",
        url_key="api",
        domain=APIS,
        arity=Arity.SINGLE,
        default="trpc",
        defaults=("trpc", "orpc", "none"),
        default_rule=_api_default,
    ),
    Field(
        id="db_setup",
        label="Database setup",
        flag="db-setup",
        url_key="dbs",
        domain=DB_SETUPS,
        arity=Arity.SINGLE,
        default="none",
    ),
    Field(
        id="web_deploy",
        label="Web deploy",
        flag="web-deploy",
        url_key="wd",
        domain=WEB_DEPLOYS,
        arity=Arity.SINGLE,
        default="none",
    ),
    Field(
        id="addons",
        label="Addons",
        flag="addons",
        url_key="add",
        domain=ADDONS,
        arity=Arity.MULTI,
        default=("turborepo",),
    ),
    Field(
        id="examples",
        label="Examples",
        flag="examples",
        url_key="ex",
        domain=EXAMPLES,
        arity=Arity.MULTI,
        default=(),
        defaults=((), ("todo",)),
        default_rule=_examples_default,
    ),
    Field(
        id="package_manager",
        label="Package manager",
        flag="package-manager",
        url_key="pm",
        domain=PACKAGE_MANAGERS,
        arity=Arity.SINGLE,
        default="bun",
    ),
    Field(
        id="git",
        label="Git",
        flag="git",
        url_key="git",
        domain=BOOLEANS,
        arity=Arity.SINGLE,
        default=True,
    ),
    Field(
        id="install",
        label="Install dependencies",
        flag="install",
        url_key="i",
        domain=BOOLEANS,
        arity=Arity.SINGLE,
        default=True,
    ),
)

FIELD_REGISTRY: dict[str, Field] = {f.id: f for f in FIELDS}
FIELD_IDS: tuple[str, ...] = tuple(f.id for f in FIELDS)

# Fields are filled in this order when a state is built from partial input,
# so that every conditional default sees its inputs already settled.
FILL_ORDER: tuple[str, ...] = (
    "backend",
    "frontend",
    "runtime",
    "database",
    "orm",
    "auth",
    "api",
    "db_setup",
    "web_deploy",
    "addons",
    "examples",
    "package_manager",
    "git",
    "install",
)


def get_field(field_id: str) -> Field:
    """Look up a field by id, raising ``KeyError`` with a clear message."""
    try:
        return FIELD_REGISTRY[field_id]
    except KeyError:
        msg = f"Unknown field: {field_id!r}"
        raise KeyError(msg) from None


def lookup_field(name: str) -> Field | None:
    """Find a field by id, flag name, or URL key."""
    key = name.strip().lower()
    for field in FIELDS:
        if key in (field.id, field.flag, field.url_key):
            return field
    return None


def parse_value(field: Field, raw: str) -> Any:
    """Parse a textual value (prompt answer, builder edit) for *field*.

    Booleans accept true/false, yes/no, 1/0; set fields accept a single
    member; everything else is returned as-is for the resolver to check.
    """
    text = raw.strip()
    if field.is_bool:
        lowered = text.lower()
        if lowered in ("true", "yes", "y", "1", "on"):
            return True
        if lowered in ("false", "no", "n", "0", "off"):
            return False
        msg = f"{field.label} expects true or false, got {raw!r}"
        raise ValueError(msg)
    return text


def default_for(field_id: str, state: Mapping[str, Any]) -> Any:
    """Return the default for *field_id* given the rest of *state*."""
    field = get_field(field_id)
    if field.default_rule is None:
        return field.default
    return field.default_rule(state)


def possible_defaults(field_id: str) -> tuple[Any, ...]:
    """Every value :func:`default_for` may return for *field_id*."""
    field = get_field(field_id)
    return field.defaults or (field.default,)


def static_defaults() -> dict[str, Any]:
    """Return a fresh copy of the default snapshot (field id -> value)."""
    return {f.id: f.default for f in FIELDS}
