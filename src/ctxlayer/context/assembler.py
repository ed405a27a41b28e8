"""Hierarchical assembly: flatten a composition tree into one text block.

Assembly is a depth-first walk from the root. The set of fragments already
on the current branch is passed down by value, so the same fragment may be
reused in two sibling branches (a diamond) but never inside its own subtree.
A fragment met again on its own branch, or met at ``max_depth``, is rendered
as plain content without expanding its children.

Token overflow never aborts: a child whose rendered subtree would push the
running total past ``max_tokens`` is left out (even a required one) and a
diagnostic is recorded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from ctxlayer.context.formatting import render_block
from ctxlayer.context.models import (
    AssemblyOptions,
    AssemblyResult,
    Diagnostic,
    DiagnosticKind,
)
from ctxlayer.exceptions import ValidationError
from ctxlayer.fragments.models import CompositionEdge, Fragment, TokenEstimator, utcnow
from ctxlayer.graph.composition import CompositionGraph

logger = logging.getLogger("ctxlayer.assembler")


class HierarchicalAssembler:
    """Flattens composition subtrees of fragments.

    Usage:
        assembler = HierarchicalAssembler(fragments, composition_edges)
        result = assembler.assemble("root-id", AssemblyOptions(max_tokens=4000))
        print(result.text)
    """

    def __init__(
        self,
        fragments: Iterable[Fragment],
        composition: CompositionGraph | Iterable[CompositionEdge],
        now: datetime | None = None,
    ) -> None:
        self.fragments = {f.id: f for f in fragments}
        if isinstance(composition, CompositionGraph):
            self.composition = composition
        else:
            self.composition = CompositionGraph(composition)
        self.now = now or utcnow()

    def assemble(self, root_id: str, options: AssemblyOptions | None = None) -> AssemblyResult:
        """Assemble the tree under ``root_id``.

        Raises:
            ValidationError: if the root is unknown, deleted or expired.
        """
        options = options or AssemblyOptions()
        root = self.fragments.get(root_id)
        if root is None:
            raise ValidationError(f"Root fragment not found: {root_id}")
        if not root.is_active(self.now):
            raise ValidationError(f"Root fragment is deleted or expired: {root_id}")

        diagnostics: list[Diagnostic] = []
        text, tokens, included = self._assemble(root, 0, frozenset(), options, diagnostics)

        return AssemblyResult(
            root_id=root_id,
            text=text,
            total_tokens=tokens,
            included=included,
            diagnostics=diagnostics,
        )

    def _assemble(
        self,
        fragment: Fragment,
        depth: int,
        visited: frozenset[str],
        options: AssemblyOptions,
        diagnostics: list[Diagnostic],
    ) -> tuple[str, int, list[str]]:
        """Return (text, tokens, included ids) for one subtree."""
        tokens = fragment.token_count or 0

        if fragment.id in visited:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.CYCLE,
                fragment_id=fragment.id,
                message=f"'{fragment.name}' already appears on this branch; not expanded",
            ))
            logger.debug(f"Cycle at {fragment.id}, rendering as leaf")
            return fragment.content, tokens, [fragment.id]

        if depth >= options.max_depth:
            if self.composition.children(fragment.id):
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.DEPTH_LIMIT,
                    fragment_id=fragment.id,
                    message=f"'{fragment.name}' reached max depth {options.max_depth}",
                ))
            return fragment.content, tokens, [fragment.id]

        branch = visited | {fragment.id}
        parts = [fragment.content]
        included = [fragment.id]

        for edge in self.composition.children(fragment.id):
            if not options.include_optional and not edge.is_required:
                continue

            child = self.fragments.get(edge.child_id)
            if child is None or not child.is_active(self.now):
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.MISSING_FRAGMENT,
                    fragment_id=edge.child_id,
                    message=f"Child of '{fragment.name}' is missing, deleted or expired",
                ))
                continue

            child_text, _, child_ids = self._assemble(
                child, depth + 1, branch, options, diagnostics
            )
            child_tokens = TokenEstimator.estimate(child_text)

            if tokens + child_tokens > options.max_tokens:
                kind = "Required child" if edge.is_required else "Child"
                message = (
                    f"{kind} '{child.name}' ({child_tokens} tokens) exceeds the "
                    f"remaining budget under '{fragment.name}'"
                )
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.BUDGET_OVERFLOW,
                    fragment_id=child.id,
                    message=message,
                ))
                logger.warning(message)
                continue

            parts.append(render_block(child, options.include_headers, options.separator, child_text))
            included.extend(child_ids)
            tokens += child_tokens

        return options.separator.join(parts), tokens, included
