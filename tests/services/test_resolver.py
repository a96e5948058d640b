"""Tests for the resolver: fixpoint semantics in Strict and Adaptive mode."""

from __future__ import annotations

import pytest

from stackctl.domain.rules import DEFAULT_RULES, ErrorCode, Rule, Tier, one_of
from stackctl.domain.stack import DEFAULT_STATE, StackState, build_state, toggle_value
from stackctl.infrastructure.rule_graph import RuleCycleError
from stackctl.services.resolver import Mode, Resolver, ResolverFault, RuleSet, default_rule_set


class TestRuleSet:
    def test_default_rule_set_is_cached(self) -> None:
        assert default_rule_set() is default_rule_set()
        assert len(default_rule_set()) == len(DEFAULT_RULES)

    def test_rejects_cycles(self) -> None:
        rules = [
            Rule(
                id="hono-node",
                tier=Tier.BACKEND,
                priority=0,
                when={"backend": one_of("hono")},
                then={"runtime": "node"},
                note="hono runs on node",
            ),
            Rule(
                id="node-hono",
                tier=Tier.RUNTIME,
                priority=100,
                when={"runtime": one_of("node")},
                then={"backend": "hono"},
                note="node runs hono",
            ),
        ]
        with pytest.raises(RuleCycleError):
            RuleSet(rules)

    def test_rejects_duplicate_ids(self) -> None:
        rule = DEFAULT_RULES[0]
        with pytest.raises(ValueError, match="Duplicate rule id"):
            RuleSet([rule, rule])

    def test_get(self) -> None:
        assert default_rule_set().get("convex-stack").tier is Tier.BACKEND


class TestAdaptive:
    def test_default_state_is_a_fixpoint(self, resolver: Resolver) -> None:
        result = resolver.resolve(DEFAULT_STATE)
        assert result.ok
        assert result.state == DEFAULT_STATE
        assert result.changes == ()
        assert result.passes == 1

    def test_convex_cascade(self, resolver: Resolver) -> None:
        result = resolver.resolve(DEFAULT_STATE.with_values(backend="convex"))
        state = result.state
        assert (state.runtime, state.database, state.orm, state.api) == ("none",) * 4
        assert state.auth is False
        assert state.db_setup == "none"
        assert state.examples == ("todo",)
        assert [c.field for c in result.changes] == [
            "runtime",
            "database",
            "orm",
            "api",
            "auth",
            "examples",
        ]
        assert {c.category for c in result.changes} == {"backend"}
        assert {c.rule for c in result.changes} == {"convex-stack"}

    def test_convex_drops_unsupported_frontends(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(backend="convex", frontend=("nuxt",))
        assert resolver.resolve(state).state.frontend == ()

    def test_turso_forces_sqlite_and_drizzle(self, resolver: Resolver) -> None:
        state = build_state({"db_setup": "turso", "database": "postgres"})
        assert state.orm == "prisma"
        result = resolver.resolve(state)
        assert result.state.database == "sqlite"
        assert result.state.orm == "drizzle"
        assert len(result.changes) == 2
        assert [(c.field, c.rule) for c in result.changes] == [
            ("database", "turso-database"),
            ("orm", "turso-orm"),
        ]
        assert all(c.category == "db-setup" for c in result.changes)

    def test_workers_with_mongodb(self, resolver: Resolver) -> None:
        state = build_state({"runtime": "workers", "database": "mongodb", "backend": "express"})
        result = resolver.resolve(state)
        assert result.state.backend == "hono"
        assert result.state.database == "sqlite"
        assert result.state.orm == "drizzle"
        assert result.notes["database"] == ("MongoDB is not available on the workers runtime",)

    def test_server_backend_gets_a_runtime(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(backend="express", runtime="none")
        assert resolver.resolve(state).state.runtime == "bun"

    def test_orpc_frontend_switches_api(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(frontend=("svelte",))
        assert resolver.resolve(state).state.api == "orpc"

    def test_addon_dropped_without_frontend(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(frontend=("native-nativewind",), addons=("pwa", "biome"))
        result = resolver.resolve(state)
        assert result.state.addons == ("biome",)
        assert result.changes[0].category == "addons"

    def test_examples_need_api(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(api="none", examples=("todo", "ai"))
        assert resolver.resolve(state).state.examples == ()

    def test_domain_closure(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(
            backend="rails",
            frontend=("next", "nuxt", "webpack"),
            addons=("webpack",),
        )
        result = resolver.resolve(state)
        assert result.state.backend == "hono"
        assert result.state.frontend == ("next",)
        assert result.state.addons == ()
        assert {c.field for c in result.changes if c.category == "domain"} == {
            "backend",
            "frontend",
            "addons",
        }

    def test_idempotent(self, resolver: Resolver) -> None:
        raw = build_state({"db_setup": "d1", "backend": "express", "database": "postgres"})
        first = resolver.resolve(raw)
        second = resolver.resolve(first.state)
        assert second.state == first.state
        assert second.changes == ()
        assert first.state.runtime == "workers"
        assert first.state.backend == "hono"

    def test_deterministic(self, resolver: Resolver) -> None:
        a = DEFAULT_STATE.with_values(backend="convex", database="mysql", addons=("pwa",))
        b = DEFAULT_STATE.with_values(addons=("pwa",), database="mysql", backend="convex")
        assert resolver.resolve(a) == resolver.resolve(b)

    def test_input_state_untouched(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(backend="convex")
        resolver.resolve(state)
        assert state.runtime == "bun"


class TestStrict:
    def test_explicit_conflict_fails(self, resolver: Resolver) -> None:
        state = build_state({"backend": "convex", "database": "postgres"})
        result = resolver.resolve(state, Mode.STRICT, explicit={"backend", "database"})
        assert not result.ok
        assert result.state == state
        error = result.errors[0]
        assert error.code is ErrorCode.FLAG_CONFLICT
        assert error.fields == ("backend", "database")
        assert error.message.startswith("--backend convex conflicts with --database postgres")

    def test_non_explicit_fields_follow(self, resolver: Resolver) -> None:
        state = build_state({"db_setup": "turso", "database": "postgres"})
        result = resolver.resolve(state, Mode.STRICT, explicit={"db_setup"})
        assert result.ok
        assert result.state.database == "sqlite"

    def test_boolean_conflict_message(self, resolver: Resolver) -> None:
        state = build_state({"database": "none", "auth": True})
        result = resolver.resolve(state, Mode.STRICT, explicit={"database", "auth"})
        assert result.errors[0].message.startswith("--database none conflicts with --auth")

    def test_conflict_blames_explicit_root(self, resolver: Resolver) -> None:
        state = build_state({"db_setup": "neon", "orm": "mongoose"})
        result = resolver.resolve(state, Mode.STRICT, explicit={"db_setup", "orm"})
        assert not result.ok
        error = result.errors[0]
        assert error.fields == ("db_setup", "orm")
        assert error.message.startswith("--db-setup neon conflicts with --orm mongoose")

    def test_conflict_with_default_names_it(self, resolver: Resolver) -> None:
        state = build_state({"orm": "mongoose"})
        result = resolver.resolve(state, Mode.STRICT, explicit={"orm"})
        error = result.errors[0]
        assert error.code is ErrorCode.FLAG_CONFLICT
        assert error.fields == ("orm",)
        assert error.message.startswith("default --database sqlite conflicts with --orm mongoose")

    def test_unsupported_value(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(backend="rails", addons=("webpack",))
        result = resolver.resolve(state, Mode.STRICT, explicit={"backend", "addons"})
        assert [e.code for e in result.errors] == [ErrorCode.UNSUPPORTED_VALUE] * 2
        assert result.errors[0].fields == ("backend",)
        assert "rails" in result.errors[0].message
        assert "webpack" in result.errors[1].message

    def test_group_violation_reported(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(frontend=("next", "svelte"))
        result = resolver.resolve(state, Mode.STRICT, explicit={"frontend"})
        assert "At most one frontend" in result.errors[0].message


class TestSpeculativeLocked:
    def test_locked_field_rejects_candidate(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(database="postgres", orm="prisma")
        assert resolver.is_compatible(state, "backend", "convex")
        assert not resolver.is_compatible(state, "backend", "convex", locked={"database"})

    def test_multi_field_members_checked(self, resolver: Resolver) -> None:
        options = resolver.option_states(DEFAULT_STATE, "addons", locked={"frontend"})
        assert options["pwa"] is True
        state = DEFAULT_STATE.with_values(frontend=("native-nativewind",))
        assert resolver.option_states(state, "addons", locked={"frontend"})["pwa"] is False


class TestFault:
    def test_pass_guard(self) -> None:
        resolver = Resolver(max_passes=1)
        with pytest.raises(ResolverFault) as exc_info:
            resolver.resolve(DEFAULT_STATE.with_values(backend="convex"))
        assert exc_info.value.passes == 1
        assert exc_info.value.last_fired == ["convex-stack"]

    def test_single_pass_enough_for_fixpoint(self) -> None:
        assert Resolver(max_passes=1).resolve(DEFAULT_STATE).ok


class TestSpeculativeCheck:
    def test_selected_value_is_compatible(self, resolver: Resolver) -> None:
        assert resolver.is_compatible(DEFAULT_STATE, "backend", "hono")
        assert resolver.is_compatible(DEFAULT_STATE, "addons", "turborepo")

    def test_reverted_value_is_incompatible(self, resolver: Resolver) -> None:
        workers = DEFAULT_STATE.with_values(runtime="workers")
        assert not resolver.is_compatible(workers, "database", "mongodb")
        assert not resolver.is_compatible(workers, "db_setup", "docker")
        assert resolver.is_compatible(workers, "db_setup", "d1")

    def test_state_not_committed(self, resolver: Resolver) -> None:
        resolver.is_compatible(DEFAULT_STATE, "backend", "convex")
        assert DEFAULT_STATE.backend == "hono"

    def test_option_states(self, resolver: Resolver) -> None:
        options = resolver.option_states(DEFAULT_STATE, "orm")
        assert options == {"drizzle": True, "prisma": True, "mongoose": False, "none": False}

    def test_set_member_options(self, resolver: Resolver) -> None:
        native = DEFAULT_STATE.with_values(frontend=("native-nativewind",))
        options = resolver.option_states(native, "addons")
        assert options["pwa"] is False
        assert options["biome"] is True

    def test_matches_resolve_of_toggled_state(self, resolver: Resolver) -> None:
        state = DEFAULT_STATE.with_values(backend="convex")
        state = resolver.resolve(state).state
        for value, available in resolver.option_states(state, "examples").items():
            final = resolver.resolve(toggle_value(state, "examples", value)).state
            assert available == (value in final.examples)


def test_resolution_reports_passes(resolver: Resolver) -> None:
    state = StackState(backend="convex")
    assert resolver.resolve(state).passes == 2
