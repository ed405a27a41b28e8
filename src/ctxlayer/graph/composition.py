"""Composition graph: parent -> child edges used to assemble fragment trees."""

from __future__ import annotations

from collections.abc import Callable, Iterable

import networkx as nx

from ctxlayer.fragments.models import CompositionEdge


class CompositionGraph:
    """Ordered parent -> child structure over fragment ids.

    Each (parent, child) pair appears at most once; adding it again updates
    its order and required flag in place. Cycles are allowed here and are
    handled by the assembler.
    """

    def __init__(self, edges: Iterable[CompositionEdge] = ()) -> None:
        self.graph = nx.DiGraph()
        self._seq = 0
        for edge in edges:
            self.add(edge)

    def add(self, edge: CompositionEdge) -> None:
        if self.graph.has_edge(edge.parent_id, edge.child_id):
            seq = self.graph.edges[edge.parent_id, edge.child_id]["seq"]
        else:
            seq = self._seq
            self._seq += 1
        self.graph.add_edge(
            edge.parent_id,
            edge.child_id,
            order=edge.order,
            is_required=edge.is_required,
            seq=seq,
        )

    def remove(self, parent_id: str, child_id: str) -> bool:
        if not self.graph.has_edge(parent_id, child_id):
            return False
        self.graph.remove_edge(parent_id, child_id)
        return True

    def children(self, parent_id: str) -> list[CompositionEdge]:
        """Child edges of a parent sorted by their explicit order."""
        if not self.graph.has_node(parent_id):
            return []
        rows = [
            (data["order"], data["seq"], child, data["is_required"])
            for child, data in self.graph.adj[parent_id].items()
        ]
        rows.sort(key=lambda r: (r[0], r[1]))
        return [
            CompositionEdge(parent_id=parent_id, child_id=child, order=order, is_required=req)
            for order, _, child, req in rows
        ]

    def walk(
        self,
        root_id: str,
        max_depth: int = 5,
        include_optional: bool = True,
        keep: Callable[[str], bool] | None = None,
    ) -> list[tuple[str, int]]:
        """Depth-first (id, depth) pairs below a root, in composition order.

        A node already on the current branch is not descended into again.
        Children rejected by ``keep`` are left out together with their subtrees.
        """
        results: list[tuple[str, int]] = []

        def _visit(node_id: str, depth: int, branch: frozenset[str]) -> None:
            if depth >= max_depth:
                return
            for edge in self.children(node_id):
                if not include_optional and not edge.is_required:
                    continue
                if keep is not None and not keep(edge.child_id):
                    continue
                results.append((edge.child_id, depth + 1))
                if edge.child_id not in branch:
                    _visit(edge.child_id, depth + 1, branch | {edge.child_id})

        _visit(root_id, 0, frozenset({root_id}))
        return results

    def edges(self) -> list[CompositionEdge]:
        return [
            CompositionEdge(
                parent_id=u, child_id=v, order=d["order"], is_required=d["is_required"]
            )
            for u, v, d in sorted(self.graph.edges(data=True), key=lambda e: e[2]["seq"])
        ]

    def __len__(self) -> int:
        return self.graph.number_of_edges()
