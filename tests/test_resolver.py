"""Tests for dependency resolution and ordering."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from ctxlayer.context.models import DiagnosticKind, ResolutionOptions
from ctxlayer.context.resolver import DependencyResolver, order_by_dependencies
from ctxlayer.fragments.models import Fragment, RelationshipEdge, RelationshipType

R = RelationshipType


def _rel(source: str, target: str, type: RelationshipType = R.REQUIRES, strength: float = 1.0):
    return RelationshipEdge(source_id=source, target_id=target, type=type, strength=strength)


def _frags(*ids: str) -> list[Fragment]:
    return [Fragment(id=i, content=f"Content of {i}") for i in ids]


class TestResolve:
    def test_requires_chain_ordered(self):
        resolver = DependencyResolver(_frags("A", "B", "C"), [_rel("A", "B"), _rel("B", "C")])
        result = resolver.resolve(["A"])
        assert set(result.resolved) == {"A", "B", "C"}
        assert result.order == ["C", "B", "A"]
        assert result.diagnostics == []

    def test_conflict_recorded_and_kept(self):
        edges = [_rel("X", "Y"), _rel("Y", "Z", R.CONFLICTS)]
        result = DependencyResolver(_frags("X", "Y", "Z"), edges).resolve(["X", "Z"])
        assert set(result.resolved) == {"X", "Y", "Z"}
        assert result.has_conflicts
        assert len(result.conflicts) == 1
        assert result.conflicts[0].fragment_id == "Y"
        assert result.conflicts[0].conflicts_with == ["Z"]

    def test_conflicting_fragment_not_expanded(self):
        edges = [_rel("X", "Z", R.CONFLICTS), _rel("X", "W")]
        result = DependencyResolver(_frags("X", "Z", "W"), edges).resolve(["X", "Z"])
        assert "W" not in result.resolved
        assert result.conflicts[0].fragment_id == "X"

    def test_extends_is_followed(self):
        result = DependencyResolver(_frags("A", "B"), [_rel("A", "B", R.EXTENDS)]).resolve(["A"])
        assert result.order == ["B", "A"]

    @pytest.mark.parametrize("type", [R.USES, R.REPLACES, R.CONFLICTS])
    def test_non_dependency_edges_not_followed(self, type: RelationshipType):
        result = DependencyResolver(_frags("A", "B"), [_rel("A", "B", type)]).resolve(["A"])
        assert result.resolved == ["A"]

    def test_seeds_always_kept(self):
        result = DependencyResolver(_frags("A"), []).resolve(["A", "unknown", "A"])
        assert result.resolved == ["A", "unknown"]

    def test_unavailable_targets_skipped(self, now: datetime):
        frags = _frags("A", "B") + [Fragment(id="D", content="x", deleted_at=now)]
        edges = [_rel("A", "B"), _rel("A", "D"), _rel("A", "ghost")]
        result = DependencyResolver(frags, edges, now=now).resolve(["A"])
        assert set(result.resolved) == {"A", "B"}

    def test_inactive_seed_kept_but_not_expanded(self, now: datetime):
        frags = _frags("dep", "other") + [Fragment(id="gone", content="x", deleted_at=now)]
        edges = [_rel("gone", "dep"), _rel("other", "gone", R.CONFLICTS)]
        result = DependencyResolver(frags, edges, now=now).resolve(["gone", "other"])
        assert result.resolved == ["gone", "other"]
        assert result.conflicts == []

    def test_inactive_fragment_is_not_a_conflict_target(self, now: datetime):
        frags = _frags("a", "dep") + [Fragment.new_session("old", "x", now=now - timedelta(days=2))]
        edges = [_rel("a", "old", R.CONFLICTS), _rel("a", "dep")]
        result = DependencyResolver(frags, edges, now=now).resolve(["a", "old"])
        assert not result.has_conflicts
        assert "dep" in result.resolved
        assert DependencyResolver(frags, edges, now=now).check_conflicts(["a", "old"]) == []

    def test_max_depth(self):
        edges = [_rel("A", "B"), _rel("B", "C"), _rel("C", "D")]
        resolver = DependencyResolver(_frags("A", "B", "C", "D"), edges)
        assert set(resolver.resolve(["A"], ResolutionOptions(max_depth=2)).resolved) == {"A", "B", "C"}
        assert resolver.resolve(["A"], ResolutionOptions(max_depth=0)).resolved == ["A"]

    def test_recommendations_opt_in(self):
        edges = [_rel("A", "B", R.RECOMMENDS, 0.9), _rel("A", "C", R.RECOMMENDS, 0.5)]
        resolver = DependencyResolver(_frags("A", "B", "C"), edges)
        assert resolver.resolve(["A"]).resolved == ["A"]

        result = resolver.resolve(["A"], ResolutionOptions(include_recommendations=True))
        assert set(result.resolved) == {"A", "B"}

        lenient = ResolutionOptions(include_recommendations=True, min_recommendation_strength=0.4)
        assert set(resolver.resolve(["A"], lenient).resolved) == {"A", "B", "C"}

    def test_shared_dependency_resolved_once(self):
        edges = [_rel("A", "C"), _rel("B", "C")]
        result = DependencyResolver(_frags("A", "B", "C"), edges).resolve(["A", "B"])
        assert sorted(result.resolved) == ["A", "B", "C"]
        assert result.order.index("C") < result.order.index("A")
        assert result.order.index("C") < result.order.index("B")

    def test_order_respects_every_dependency(self):
        edges = [
            _rel("app", "db"), _rel("app", "auth"), _rel("auth", "db"),
            _rel("auth", "crypto", R.EXTENDS), _rel("db", "config"),
        ]
        frags = _frags("app", "db", "auth", "crypto", "config")
        result = DependencyResolver(frags, edges).resolve(["app"])
        assert sorted(result.order) == sorted(result.resolved)
        for edge in edges:
            assert result.order.index(edge.target_id) < result.order.index(edge.source_id)


class TestOrdering:
    def test_independent_keep_input_order(self):
        order, diagnostics = order_by_dependencies(["b", "a", "c"], [])
        assert order == ["b", "a", "c"]
        assert diagnostics == []

    def test_cycle_falls_back_to_input_order(self, caplog):
        order, diagnostics = order_by_dependencies(["A", "B"], [_rel("A", "B"), _rel("B", "A")])
        assert order == ["A", "B"]
        assert [d.kind for d in diagnostics] == [DiagnosticKind.DEPENDENCY_CYCLE]
        assert "Circular dependency" in caplog.text

    def test_resolve_with_cycle(self):
        resolver = DependencyResolver(_frags("A", "B"), [_rel("A", "B"), _rel("B", "A")])
        result = resolver.resolve(["A"])
        assert result.resolved == ["A", "B"]
        assert result.order == ["A", "B"]
        assert result.diagnostics[0].kind == DiagnosticKind.DEPENDENCY_CYCLE

    def test_edges_outside_set_ignored(self):
        order, _ = order_by_dependencies(["A", "C"], [_rel("A", "B"), _rel("B", "C")])
        assert order == ["A", "C"]


class TestCheckConflicts:
    def test_conflicts_within_set(self):
        edges = [_rel("a", "b", R.CONFLICTS), _rel("c", "z", R.CONFLICTS)]
        resolver = DependencyResolver(_frags("a", "b", "c"), edges)
        entries = resolver.check_conflicts(["a", "b", "c"])
        assert [(e.fragment_id, e.conflicts_with) for e in entries] == [("a", ["b"])]
