"""Relationship graph: typed semantic edges between fragments."""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from ctxlayer.fragments.models import DEPENDENCY_TYPES, RelationshipEdge, RelationshipType


class RelationshipGraph:
    """Directed multigraph of fragment relationships, keyed by relationship type.

    A (source, target, type) triple is unique: re-adding it updates the
    strength and bidirectional flag. Traversal always follows source -> target.
    """

    def __init__(self, edges: Iterable[RelationshipEdge] = ()) -> None:
        self.graph = nx.MultiDiGraph()
        for edge in edges:
            self.add(edge)

    def add(self, edge: RelationshipEdge) -> None:
        key = edge.type.value
        if self.graph.has_edge(edge.source_id, edge.target_id, key=key):
            self.graph.edges[edge.source_id, edge.target_id, key].update(
                strength=edge.strength, bidirectional=edge.bidirectional
            )
            return
        self.graph.add_edge(
            edge.source_id,
            edge.target_id,
            key=key,
            strength=edge.strength,
            bidirectional=edge.bidirectional,
        )

    def outgoing(
        self,
        source_id: str,
        types: Iterable[RelationshipType] | None = None,
        min_strength: float | None = None,
    ) -> list[RelationshipEdge]:
        """Edges leaving ``source_id``, optionally filtered by type and strength."""
        if not self.graph.has_node(source_id):
            return []
        wanted = {t.value for t in types} if types is not None else None

        results = []
        for _, target, key, data in self.graph.out_edges(source_id, keys=True, data=True):
            if wanted is not None and key not in wanted:
                continue
            if min_strength is not None and data["strength"] < min_strength:
                continue
            results.append(self._to_edge(source_id, target, key, data))
        return results

    def touching(self, ids: Iterable[str]) -> list[RelationshipEdge]:
        """All edges whose source or target is in ``ids``."""
        id_set = set(ids)
        return [
            self._to_edge(u, v, k, d)
            for u, v, k, d in self.graph.edges(keys=True, data=True)
            if u in id_set or v in id_set
        ]

    def dependency_graph(self, ids: Iterable[str]) -> nx.DiGraph:
        """Prerequisite graph over ``ids``: an edge target -> source for requires/extends.

        Nodes keep the iteration order of ``ids``.
        """
        dep = nx.DiGraph()
        dep.add_nodes_from(ids)
        dep_keys = {t.value for t in DEPENDENCY_TYPES}
        for u, v, key in self.graph.edges(keys=True):
            if key in dep_keys and dep.has_node(u) and dep.has_node(v):
                dep.add_edge(v, u)
        return dep

    def edges(self) -> list[RelationshipEdge]:
        return [self._to_edge(u, v, k, d) for u, v, k, d in self.graph.edges(keys=True, data=True)]

    def __len__(self) -> int:
        return self.graph.number_of_edges()

    @staticmethod
    def _to_edge(source: str, target: str, key: str, data: dict) -> RelationshipEdge:
        return RelationshipEdge(
            source_id=source,
            target_id=target,
            type=RelationshipType(key),
            strength=data.get("strength", 1.0),
            bidirectional=data.get("bidirectional", False),
        )
