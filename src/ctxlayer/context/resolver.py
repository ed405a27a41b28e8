"""Dependency resolution and dependency-safe ordering of fragments.

Resolution expands a seed set breadth-first along ``requires`` and
``extends`` edges (and, optionally, strong ``recommends`` edges), level by
level, for at most ``max_depth`` levels. A fragment that conflicts with
something already resolved is annotated, kept, and not expanded further.
Deleted and expired fragments are never expanded and never count as
conflicts, though a seed always stays in the result.

Ordering is Kahn's algorithm over the requires/extends subgraph: every
prerequisite comes before the fragments that need it. A cycle makes the
ordering fall back to the input order instead of failing.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from datetime import datetime

from ctxlayer.context.models import (
    ConflictEntry,
    Diagnostic,
    DiagnosticKind,
    ResolutionOptions,
    ResolutionResult,
)
from ctxlayer.fragments.models import (
    DEPENDENCY_TYPES,
    Fragment,
    RelationshipEdge,
    RelationshipType,
    utcnow,
)
from ctxlayer.graph.relationships import RelationshipGraph

logger = logging.getLogger("ctxlayer.resolver")


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def _as_graph(relationships: RelationshipGraph | Iterable[RelationshipEdge]) -> RelationshipGraph:
    if isinstance(relationships, RelationshipGraph):
        return relationships
    return RelationshipGraph(relationships)


def order_by_dependencies(
    ids: Sequence[str],
    relationships: RelationshipGraph | Iterable[RelationshipEdge],
) -> tuple[list[str], list[Diagnostic]]:
    """Order ``ids`` so that requires/extends targets precede their sources.

    Returns the order and any diagnostics. On a cycle the input order is
    returned unchanged with a ``dependency_cycle`` diagnostic.
    """
    ids = _unique(ids)
    dep_graph = _as_graph(relationships).dependency_graph(ids)

    in_degree = {node: dep_graph.in_degree(node) for node in ids}
    ready = deque(node for node in ids if in_degree[node] == 0)
    ordered: list[str] = []

    while ready:
        current = ready.popleft()
        ordered.append(current)
        for dependent in dep_graph.successors(current):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)

    if len(ordered) < len(ids):
        stuck = [node for node in ids if in_degree[node] > 0]
        message = (
            f"Circular dependency among {', '.join(stuck)}; keeping input order"
        )
        logger.warning(message)
        return list(ids), [
            Diagnostic(kind=DiagnosticKind.DEPENDENCY_CYCLE, fragment_id=stuck[0], message=message)
        ]

    return ordered, []


class DependencyResolver:
    """Resolves the transitive dependencies of a fragment set.

    Usage:
        resolver = DependencyResolver(fragments, relationship_edges)
        result = resolver.resolve(["task-1"])
        result.resolved, result.conflicts, result.order
    """

    def __init__(
        self,
        fragments: Iterable[Fragment],
        relationships: RelationshipGraph | Iterable[RelationshipEdge],
        now: datetime | None = None,
    ) -> None:
        self.fragments = {f.id: f for f in fragments}
        self.relationships = _as_graph(relationships)
        self.now = now or utcnow()

    def resolve(
        self, seed_ids: Sequence[str], options: ResolutionOptions | None = None
    ) -> ResolutionResult:
        options = options or ResolutionOptions()
        seeds = _unique(seed_ids)

        resolved: dict[str, None] = dict.fromkeys(seeds)
        conflicts: list[ConflictEntry] = []
        # Inactive seeds stay in the result but are never expanded
        frontier = [s for s in seeds if self._is_available(s)]
        depth = 0

        while frontier and depth < options.max_depth:
            next_frontier: list[str] = []

            for fragment_id in frontier:
                clashing = self._conflicting(fragment_id, resolved)
                if clashing:
                    conflicts.append(
                        ConflictEntry(fragment_id=fragment_id, conflicts_with=clashing)
                    )
                    logger.debug(f"{fragment_id} conflicts with {clashing}; not expanded")
                    continue

                edges = self.relationships.outgoing(fragment_id, DEPENDENCY_TYPES)
                if options.include_recommendations:
                    edges += self.relationships.outgoing(
                        fragment_id,
                        [RelationshipType.RECOMMENDS],
                        min_strength=options.min_recommendation_strength,
                    )

                for edge in edges:
                    target = edge.target_id
                    if target in resolved or not self._is_available(target):
                        continue
                    resolved[target] = None
                    next_frontier.append(target)

            frontier = next_frontier
            depth += 1

        order, diagnostics = order_by_dependencies(list(resolved), self.relationships)
        return ResolutionResult(
            resolved=list(resolved),
            conflicts=conflicts,
            order=order,
            diagnostics=diagnostics,
        )

    def order(self, ids: Sequence[str]) -> tuple[list[str], list[Diagnostic]]:
        """Dependency-safe order of an arbitrary id set."""
        return order_by_dependencies(ids, self.relationships)

    def check_conflicts(self, ids: Sequence[str]) -> list[ConflictEntry]:
        """Conflict entries among a fixed id set (no expansion)."""
        id_set = dict.fromkeys(ids)
        entries = []
        for fragment_id in id_set:
            clashing = self._conflicting(fragment_id, id_set)
            if clashing:
                entries.append(ConflictEntry(fragment_id=fragment_id, conflicts_with=clashing))
        return entries

    def _conflicting(self, fragment_id: str, resolved: dict[str, None]) -> list[str]:
        return [
            edge.target_id
            for edge in self.relationships.outgoing(fragment_id, [RelationshipType.CONFLICTS])
            if edge.target_id in resolved and self._is_available(edge.target_id)
        ]

    def _is_available(self, fragment_id: str) -> bool:
        fragment = self.fragments.get(fragment_id)
        return fragment is not None and fragment.is_active(self.now)
