"""Declarative compatibility rules over the field registry.

Every rule is one row: a conjunctive trigger (``when``), a patch effect
(``then`` fixed values, ``drop`` set members, ``reset`` to registry
default), the values its writes can produce (``yields``), and a note.
Rules are grouped into precedence tiers named after their driving field
and totally ordered by ``priority``.  Adding a technology option means
adding rows here, not new branches in the resolver.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import Any

from stackctl.domain.fields import (
    DATABASE_ORMS,
    DEFAULT_ORM,
    ORPC_FRONTENDS,
    SERVER_BACKENDS,
    default_for,
    get_field,
    possible_defaults,
)


class Tier(IntEnum):
    """Driving-field precedence; lower tiers win.

    The ORM is never a driver: the database tier picks it.
    """

    BACKEND = 0
    RUNTIME = 1
    DATABASE = 2
    DB_SETUP = 3
    FRONTEND = 4
    ADDONS = 5
    EXAMPLES = 6
    DEPLOY = 7

    @property
    def category(self) -> str:
        return self.name.lower().replace("_", "-")


class ErrorCode(StrEnum):
    """Error codes reported by a failed resolve."""

    FLAG_CONFLICT = "FLAG_CONFLICT"
    UNSUPPORTED_VALUE = "UNSUPPORTED_VALUE"
    INTERNAL_RESOLVER_FAULT = "INTERNAL_RESOLVER_FAULT"


@dataclass(frozen=True)
class Change:
    """An automatic correction made while resolving (Adaptive mode)."""

    category: str
    field: str
    rule: str
    message: str


@dataclass(frozen=True)
class ResolutionError:
    """A rejection reported while resolving (Strict mode)."""

    code: ErrorCode
    message: str
    fields: tuple[str, ...] = ()


# --- Conditions ---


@dataclass(frozen=True)
class OneOf:
    """Scalar field value is one of *values*."""

    values: frozenset[Any]

    def holds(self, value: Any) -> bool:
        return value in self.values

    def describe(self) -> str:
        return "|".join(sorted(str(v).lower() for v in self.values))


@dataclass(frozen=True)
class Has:
    """Set field contains at least one of *members*."""

    members: frozenset[str]

    def holds(self, value: tuple[str, ...]) -> bool:
        return not self.members.isdisjoint(value)

    def describe(self) -> str:
        return "has " + "|".join(sorted(self.members))


@dataclass(frozen=True)
class Lacks:
    """Set field contains none of *members*."""

    members: frozenset[str]

    def holds(self, value: tuple[str, ...]) -> bool:
        return self.members.isdisjoint(value)

    def describe(self) -> str:
        return "lacks " + "|".join(sorted(self.members))


type Condition = OneOf | Has | Lacks


def one_of(*values: Any) -> OneOf:
    return OneOf(frozenset(values))


def not_in(field_id: str, *values: Any) -> OneOf:
    """Scalar field value is anything in its domain except *values*."""
    excluded = set(values)
    return OneOf(frozenset(v for v in get_field(field_id).domain if v not in excluded))


def has(*members: str) -> Has:
    return Has(frozenset(members))


def lacks(*members: str) -> Lacks:
    return Lacks(frozenset(members))


# --- Rules ---


@dataclass(frozen=True)
class Rule:
    """One compatibility rule.

    Attributes:
        id: Stable identifier, shown in change records and ``stackctl rules``.
        tier: Driving-field precedence tier.
        priority: Total evaluation order (lower first).
        when: Field id -> condition; all must hold for the rule to fire.
        then: Field id -> fixed value to write.
        drop: Set field id -> members to remove.
        reset: Field ids to reset to their registry default.
        yields: Field id -> every value this rule can write there.
        note: Human explanation attached to each resulting change.
    """

    id: str
    tier: Tier
    priority: int
    when: Mapping[str, Condition]
    note: str
    then: Mapping[str, Any] = field(default_factory=dict)
    drop: Mapping[str, frozenset[str]] = field(default_factory=dict)
    reset: tuple[str, ...] = ()
    yields: Mapping[str, tuple[Any, ...]] = field(default_factory=dict)

    @property
    def reads(self) -> frozenset[str]:
        return frozenset(self.when)

    @property
    def writes(self) -> frozenset[str]:
        return frozenset(self.then) | frozenset(self.drop) | frozenset(self.reset)

    @property
    def driver(self) -> str:
        return self.tier.category

    def matches(self, state: Mapping[str, Any]) -> bool:
        """Return True when every trigger condition holds on *state*."""
        return all(cond.holds(state[fid]) for fid, cond in self.when.items())

    def patch(self, state: Mapping[str, Any]) -> dict[str, Any]:
        """Compute the values this rule writes, given *state*.

        The result may equal the current values; callers diff it.
        """
        out: dict[str, Any] = dict(self.then)
        for fid, members in self.drop.items():
            current = out.get(fid, state[fid])
            out[fid] = tuple(m for m in current if m not in members)
        merged = {**state, **out}
        for fid in self.reset:
            out[fid] = default_for(fid, merged)
            merged[fid] = out[fid]
        return out

    def possible_values(self, field_id: str) -> tuple[Any, ...]:
        """Values this rule may write to *field_id* (scalar writes)."""
        if field_id in self.yields:
            return self.yields[field_id]
        if field_id in self.then:
            return (self.then[field_id],)
        return possible_defaults(field_id)

    def describe_when(self) -> str:
        return ", ".join(f"{fid} {cond.describe()}" for fid, cond in self.when.items())

    def describe_effect(self) -> str:
        parts = [f"{fid}={_fmt(v)}" for fid, v in self.then.items()]
        parts += [f"{fid}-={'|'.join(sorted(m))}" for fid, m in self.drop.items()]
        parts += [f"{fid}=default" for fid in self.reset]
        return ", ".join(parts)


def _fmt(value: Any) -> str:
    if isinstance(value, tuple):
        return ",".join(value) if value else "none"
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


# --- Dependency analysis ---


def enabling_fields(source: Rule, target: Rule) -> set[str]:
    """Fields through which *source* can make *target* start firing.

    Conservative but trigger-aware: the written values must be able to
    satisfy every condition of *target* on a written field, at least one
    written field must be able to turn a condition true, and trigger
    fields both rules read but *source* leaves alone must be able to
    hold together.
    """
    written = source.writes & target.reads
    if not written:
        return set()
    for fid in written:
        if not _can_satisfy(source, fid, target.when[fid]):
            return set()
    for fid in (source.reads & target.reads) - source.writes:
        if not _jointly_satisfiable(source.when[fid], target.when[fid]):
            return set()
    return {fid for fid in written if _can_enable(source, fid, target.when[fid])}


def dependency_edges(rules: Iterable[Rule]) -> list[tuple[str, str, list[str]]]:
    """Every ``(source, target, fields)`` enabling edge between *rules*."""
    rules = list(rules)
    edges: list[tuple[str, str, list[str]]] = []
    for source in rules:
        for target in rules:
            fields = enabling_fields(source, target)
            if fields:
                edges.append((source.id, target.id, sorted(fields)))
    return edges


def _can_satisfy(source: Rule, fid: str, cond: Condition) -> bool:
    if fid in source.then and get_field(fid).is_multi:
        return cond.holds(source.then[fid])
    if fid in source.drop:
        # Dropping leaves the other members in place.
        return not isinstance(cond, Has) or not cond.members <= source.drop[fid]
    return any(cond.holds(v) for v in source.possible_values(fid))


def _can_enable(source: Rule, fid: str, cond: Condition) -> bool:
    if fid in source.drop and fid not in source.then:
        return isinstance(cond, Lacks) and not cond.members.isdisjoint(source.drop[fid])
    if fid in source.then and get_field(fid).is_multi:
        return cond.holds(source.then[fid])
    return any(cond.holds(v) for v in source.possible_values(fid))


def _jointly_satisfiable(a: Condition, b: Condition) -> bool:
    if isinstance(a, OneOf) and isinstance(b, OneOf):
        return not a.values.isdisjoint(b.values)
    if isinstance(a, Has) and isinstance(b, Lacks):
        return not a.members <= b.members
    if isinstance(a, Lacks) and isinstance(b, Has):
        return not b.members <= a.members
    return True


# --- Rule table ---

# Required (field, allowed values, forced value) members per db-setup,
# checked in order.
DB_SETUP_REQUIREMENTS: dict[str, tuple[tuple[str, tuple[str, ...], str], ...]] = {
    "turso": (
        ("database", ("sqlite",), "sqlite"),
        ("orm", ("drizzle",), "drizzle"),
    ),
    "d1": (
        ("backend", ("hono",), "hono"),
        ("runtime", ("workers",), "workers"),
        ("database", ("sqlite",), "sqlite"),
        ("orm", ("drizzle",), "drizzle"),
    ),
    "neon": (("database", ("postgres",), "postgres"),),
    "supabase": (("database", ("postgres",), "postgres"),),
    "prisma-postgres": (
        ("database", ("postgres",), "postgres"),
        ("orm", ("prisma",), "prisma"),
    ),
    "mongodb-atlas": (("database", ("mongodb",), "mongodb"),),
    "docker": (("database", ("postgres", "mysql", "mongodb"), "postgres"),),
}

# Db-setups that cannot run on the workers runtime.
WORKERS_INCOMPATIBLE_SETUPS = ("docker", "prisma-postgres", "mongodb-atlas")

# Frontends each addon needs at least one of.
ADDON_FRONTENDS: dict[str, tuple[str, ...]] = {
    "pwa": ("tanstack-router", "react-router", "solid", "next"),
    "tauri": ("tanstack-router", "react-router", "nuxt", "svelte", "solid", "next"),
}

WORKERS_DEPLOY_FRONTENDS = ("tanstack-router", "react-router", "solid", "next", "nuxt", "svelte")

_SELF_CONTAINED_BUNDLE: dict[str, Any] = {
    "runtime": "none",
    "database": "none",
    "orm": "none",
    "api": "none",
    "auth": False,
    "db_setup": "none",
}


def _backend_rules() -> list[dict[str, Any]]:
    return [
        {
            "id": "convex-stack",
            "when": {"backend": one_of("convex")},
            "then": {**_SELF_CONTAINED_BUNDLE, "examples": ("todo",)},
            "drop": {"frontend": frozenset({"nuxt", "solid"})},
            "note": "Convex provides its own data layer, API and runtime",
        },
        {
            "id": "no-backend-stack",
            "when": {"backend": one_of("none")},
            "then": {**_SELF_CONTAINED_BUNDLE, "examples": ()},
            "note": "Without a backend there is no runtime, database, API or examples",
        },
        {
            "id": "backend-needs-runtime",
            "when": {"backend": one_of(*SERVER_BACKENDS), "runtime": one_of("none")},
            "reset": ("runtime",),
            "yields": {"runtime": ("bun",)},
            "note": "A server backend needs a runtime",
        },
    ]


def _runtime_rules() -> list[dict[str, Any]]:
    return [
        {
            "id": "workers-backend",
            "when": {
                "runtime": one_of("workers"),
                "backend": one_of("next", "elysia", "express", "fastify"),
            },
            "then": {"backend": "hono"},
            "note": "The workers runtime only supports the Hono backend",
        },
        {
            "id": "workers-database",
            "when": {"runtime": one_of("workers"), "database": one_of("mongodb")},
            "reset": ("database",),
            "note": "MongoDB is not available on the workers runtime",
        },
        {
            "id": "workers-orm",
            "when": {
                "runtime": one_of("workers"),
                "database": one_of("sqlite", "postgres", "mysql"),
                "orm": one_of("prisma", "mongoose"),
            },
            "then": {"orm": "drizzle"},
            "note": "The workers runtime requires Drizzle (or no ORM)",
        },
        {
            "id": "workers-db-setup",
            "when": {
                "runtime": one_of("workers"),
                "db_setup": one_of(*WORKERS_INCOMPATIBLE_SETUPS),
            },
            "then": {"db_setup": "none"},
            "note": "This database setup cannot be used with the workers runtime",
        },
    ]


def _database_rules() -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = [
        {
            "id": "database-none",
            "when": {"database": one_of("none")},
            "then": {"orm": "none", "auth": False, "db_setup": "none"},
            "note": "Without a database there is no ORM, auth or database setup",
        },
    ]
    for database, orms in DATABASE_ORMS.items():
        rows.append(
            {
                "id": f"orm-for-{database}",
                "when": {"database": one_of(database), "orm": not_in("orm", *orms)},
                "reset": ("orm",),
                "yields": {"orm": (DEFAULT_ORM[database],)},
                "note": f"{database} supports only {' or '.join(orms)}",
            }
        )
    return rows


def _db_setup_rules() -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for setup, members in DB_SETUP_REQUIREMENTS.items():
        for index, (fid, allowed, forced) in enumerate(members):
            when: dict[str, Condition] = {"db_setup": one_of(setup)}
            for earlier_fid, earlier_allowed, _ in members[:index]:
                when[earlier_fid] = one_of(*earlier_allowed)
            if setup in WORKERS_INCOMPATIBLE_SETUPS:
                when["runtime"] = not_in("runtime", "workers")
            when[fid] = not_in(fid, *allowed)
            rows.append(
                {
                    "id": f"{setup}-{fid.replace('_', '-')}",
                    "when": when,
                    "then": {fid: forced},
                    "note": f"{setup} requires {fid} {' or '.join(allowed)}",
                }
            )
    return rows


def _frontend_rules() -> list[dict[str, Any]]:
    return [
        {
            "id": "frontend-api",
            "when": {"frontend": has(*sorted(ORPC_FRONTENDS)), "api": one_of("trpc")},
            "then": {"api": "orpc"},
            "note": "Nuxt, Svelte and Solid frontends use oRPC instead of tRPC",
        },
    ]


def _addon_rules() -> list[dict[str, Any]]:
    return [
        {
            "id": f"{addon}-frontend",
            "when": {"addons": has(addon), "frontend": lacks(*frontends)},
            "drop": {"addons": frozenset({addon})},
            "note": f"{addon} requires one of {', '.join(frontends)}",
        }
        for addon, frontends in ADDON_FRONTENDS.items()
    ]


def _example_rules() -> list[dict[str, Any]]:
    return [
        {
            "id": "examples-need-api",
            "when": {
                "examples": has("todo", "ai"),
                "api": one_of("none"),
                "backend": one_of(*SERVER_BACKENDS),
            },
            "drop": {"examples": frozenset({"todo", "ai"})},
            "note": "Examples need an API layer",
        },
        {
            "id": "todo-needs-database",
            "when": {
                "examples": has("todo"),
                "database": one_of("none"),
                "backend": one_of(*SERVER_BACKENDS),
            },
            "drop": {"examples": frozenset({"todo"})},
            "note": "The todo example needs a database",
        },
        {
            "id": "ai-backend",
            "when": {"examples": has("ai"), "backend": one_of("elysia")},
            "drop": {"examples": frozenset({"ai"})},
            "note": "The ai example is not available with Elysia",
        },
        {
            "id": "ai-frontend",
            "when": {"examples": has("ai"), "frontend": has("solid")},
            "drop": {"examples": frozenset({"ai"})},
            "note": "The ai example is not available with Solid",
        },
    ]


def _deploy_rules() -> list[dict[str, Any]]:
    return [
        {
            "id": "workers-deploy-frontend",
            "when": {
                "web_deploy": one_of("workers"),
                "frontend": lacks(*WORKERS_DEPLOY_FRONTENDS),
            },
            "then": {"web_deploy": "none"},
            "note": "Workers web deploy needs a supported web frontend",
        },
    ]


_TIER_ROWS = (
    (Tier.BACKEND, _backend_rules),
    (Tier.RUNTIME, _runtime_rules),
    (Tier.DATABASE, _database_rules),
    (Tier.DB_SETUP, _db_setup_rules),
    (Tier.FRONTEND, _frontend_rules),
    (Tier.ADDONS, _addon_rules),
    (Tier.EXAMPLES, _example_rules),
    (Tier.DEPLOY, _deploy_rules),
)


def build_rules(
    rows: Iterable[tuple[Tier, Iterable[Mapping[str, Any]]]] | None = None,
) -> list[Rule]:
    """Materialize rule rows into priority-ordered :class:`Rule` objects.

    Priority is ``tier * 100 + position within the tier``.
    """
    if rows is None:
        rows = [(tier, factory()) for tier, factory in _TIER_ROWS]
    rules: list[Rule] = []
    for tier, tier_rows in rows:
        for index, row in enumerate(tier_rows):
            rules.append(Rule(tier=tier, priority=tier * 100 + index, **row))
    rules.sort(key=lambda r: r.priority)
    return rules


DEFAULT_RULES: tuple[Rule, ...] = tuple(build_rules())
