"""Context composition: choose fragments under a budget and render them.

Two builds are offered to request handlers:

- ``build_greedy``: highest priority first, skipping whatever would overflow.
- ``build_optimal``: score every candidate, then solve the 0/1 knapsack.

``compose`` runs the whole request pipeline: expand the requested fragments
(plus auto-included ones) through their dependencies, score, select within
the budget, and render in dependency order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime

from ctxlayer.context.formatting import join_blocks, render_block
from ctxlayer.context.models import (
    DEFAULT_MAX_TOKENS,
    BuildStrategy,
    ComponentSummary,
    ComposedContext,
    ConflictEntry,
    Diagnostic,
    DiagnosticKind,
    ResolutionOptions,
)
from ctxlayer.context.optimizer import optimize_selection
from ctxlayer.context.resolver import DependencyResolver
from ctxlayer.context.scoring import RelevanceScorer
from ctxlayer.exceptions import ValidationError
from ctxlayer.fragments.models import (
    Effectiveness,
    Fragment,
    RelationshipEdge,
    active_fragments,
    utcnow,
)
from ctxlayer.graph.relationships import RelationshipGraph

logger = logging.getLogger("ctxlayer.composer")


class ContextComposer:
    """Builds the final context block for a request.

    Usage:
        composer = ContextComposer()
        ctx = composer.build_optimal(fragments, max_tokens=4000, prompt_embedding=vec)
        print(ctx.render())
    """

    def __init__(
        self,
        scorer: RelevanceScorer | None = None,
        include_headers: bool = True,
        separator: str = "\n\n",
        now: datetime | None = None,
    ) -> None:
        self.now = now or utcnow()
        self.scorer = scorer or RelevanceScorer(now=self.now)
        self.include_headers = include_headers
        self.separator = separator

    # -------------------------------------------------------------------
    # Priority-greedy build
    # -------------------------------------------------------------------

    def build_greedy(
        self,
        fragments: Iterable[Fragment],
        max_tokens: int = DEFAULT_MAX_TOKENS,
        auto_include_only: bool = False,
    ) -> ComposedContext:
        """Append fragments by descending priority until the budget runs out."""
        _check_budget(max_tokens)

        candidates = _renderable(fragments, self.now)
        if auto_include_only:
            candidates = [f for f in candidates if f.auto_include]
        candidates.sort(key=lambda f: f.priority, reverse=True)

        chosen: list[Fragment] = []
        skipped: list[str] = []
        diagnostics: list[Diagnostic] = []
        total = 0

        for fragment in candidates:
            if total + fragment.token_count > max_tokens:
                message = f"Skipping '{fragment.name}': would exceed token limit"
                logger.warning(message)
                skipped.append(fragment.id)
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.BUDGET_OVERFLOW,
                    fragment_id=fragment.id,
                    message=message,
                ))
                continue
            chosen.append(fragment)
            total += fragment.token_count

        return self._render(
            [(f, None) for f in chosen],
            strategy=BuildStrategy.GREEDY,
            max_tokens=max_tokens,
            skipped=skipped,
            diagnostics=diagnostics,
        )

    # -------------------------------------------------------------------
    # Score-optimal build
    # -------------------------------------------------------------------

    def build_optimal(
        self,
        fragments: Iterable[Fragment],
        max_tokens: int = DEFAULT_MAX_TOKENS,
        prompt_embedding: Sequence[float] | None = None,
        effectiveness: Mapping[str, Effectiveness] | None = None,
    ) -> ComposedContext:
        """Score every active fragment and keep the best subset that fits."""
        _check_budget(max_tokens)
        candidates = _renderable(fragments, self.now)
        return self._select_and_render(candidates, max_tokens, prompt_embedding, effectiveness)

    # -------------------------------------------------------------------
    # Full request pipeline
    # -------------------------------------------------------------------

    def compose(
        self,
        seed_ids: Sequence[str],
        fragments: Iterable[Fragment],
        relationships: RelationshipGraph | Iterable[RelationshipEdge],
        max_tokens: int = DEFAULT_MAX_TOKENS,
        prompt_embedding: Sequence[float] | None = None,
        effectiveness: Mapping[str, Effectiveness] | None = None,
        resolution: ResolutionOptions | None = None,
        include_auto: bool = True,
    ) -> ComposedContext:
        """Resolve, score, select and render the context for a request."""
        _check_budget(max_tokens)
        fragments = list(fragments)
        active = {f.id: f for f in _renderable(fragments, self.now)}

        seeds = list(dict.fromkeys(seed_ids))
        if include_auto:
            seeds += [fid for fid, f in active.items() if f.auto_include and fid not in seeds]

        resolver = DependencyResolver(fragments, relationships, now=self.now)
        result = resolver.resolve(seeds, resolution)

        # Candidates in dependency order; selection keeps that order
        candidates = [active[fid] for fid in result.order if fid in active]
        return self._select_and_render(
            candidates,
            max_tokens,
            prompt_embedding,
            effectiveness,
            conflicts=result.conflicts,
            diagnostics=list(result.diagnostics),
        )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    def _select_and_render(
        self,
        candidates: list[Fragment],
        max_tokens: int,
        prompt_embedding: Sequence[float] | None,
        effectiveness: Mapping[str, Effectiveness] | None,
        conflicts: list[ConflictEntry] | None = None,
        diagnostics: list[Diagnostic] | None = None,
    ) -> ComposedContext:
        scored = self.scorer.score_many(candidates, prompt_embedding, effectiveness)
        selection = optimize_selection(scored, max_tokens)

        picked = {s.fragment.id for s in selection.selected}
        skipped = [f.id for f in candidates if f.id not in picked]
        if skipped:
            logger.debug(f"Knapsack left out {len(skipped)} of {len(candidates)} fragments")

        ctx = self._render(
            [(s.fragment, s.score) for s in selection.selected],
            strategy=BuildStrategy.OPTIMAL,
            max_tokens=max_tokens,
            skipped=skipped,
            diagnostics=diagnostics or [],
        )
        ctx.total_score = selection.total_score
        ctx.conflicts = conflicts or []
        return ctx

    def _render(
        self,
        chosen: list[tuple[Fragment, float | None]],
        strategy: BuildStrategy,
        max_tokens: int,
        skipped: list[str],
        diagnostics: list[Diagnostic],
    ) -> ComposedContext:
        components = []
        for fragment, score in chosen:
            block = render_block(fragment, self.include_headers, self.separator)
            components.append(ComponentSummary(
                id=fragment.id,
                name=fragment.name,
                layer_type=fragment.layer_type,
                tokens=fragment.token_count,
                score=round(score, 4) if score is not None else None,
                content=block,
            ))

        return ComposedContext(
            text=join_blocks((c.content for c in components), self.separator),
            strategy=strategy,
            components=components,
            skipped=skipped,
            total_tokens=sum(c.tokens for c in components),
            max_tokens=max_tokens,
            diagnostics=diagnostics,
        )


def _renderable(fragments: Iterable[Fragment], now: datetime) -> list[Fragment]:
    """Active fragments that have something to render."""
    return [f for f in active_fragments(fragments, now) if f.content]


def _check_budget(max_tokens: int) -> None:
    if max_tokens < 0:
        raise ValidationError(f"max_tokens must be >= 0, got {max_tokens}")
