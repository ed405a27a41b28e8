"""Relevance scoring for fragments.

score(f) = priority_weight * p
         + similarity_weight * cos(f.embedding, prompt)   [both embeddings present]
           or priority_weight * p                         [fallback]
         + effectiveness_weight * (0.5 * rating/5 + 0.5 * success_rate)
           or default_effectiveness                       [no history]
         + usage_weight * min(usage_count / 100, 1)
         + auto_include_bonus                             [auto_include]
  then * stale_penalty if unused for more than stale_after_days,
  clamped to [0, 1].   (p = priority / 10)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

import numpy as np
from pydantic import BaseModel, Field

from ctxlayer.context.models import ScoredFragment
from ctxlayer.fragments.models import Effectiveness, Fragment, as_utc, utcnow


class ScoringWeights(BaseModel):
    """Weights of the relevance score components."""

    priority: float = 0.2
    similarity: float = 0.4
    effectiveness: float = 0.3
    default_effectiveness: float = 0.15
    usage: float = 0.1
    usage_saturation: int = Field(default=100, gt=0)
    auto_include_bonus: float = 0.1
    stale_after_days: int = Field(default=90, ge=0)
    stale_penalty: float = Field(default=0.7, ge=0.0, le=1.0)


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 when undefined."""
    if a is None or b is None or len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class RelevanceScorer:
    """Scores fragments against a prompt, between 0 and 1."""

    def __init__(self, weights: ScoringWeights | None = None, now: datetime | None = None) -> None:
        self.weights = weights or ScoringWeights()
        self.now = now or utcnow()

    def score(
        self,
        fragment: Fragment,
        prompt_embedding: Sequence[float] | None = None,
        effectiveness: Effectiveness | None = None,
    ) -> float:
        w = self.weights
        priority_term = w.priority * (fragment.priority / 10)

        total = priority_term

        if prompt_embedding is not None and fragment.embedding is not None:
            total += w.similarity * cosine_similarity(fragment.embedding, prompt_embedding)
        else:
            # No embeddings: priority stands in for similarity
            total += priority_term

        if effectiveness is not None:
            eff = 0.5 * (effectiveness.avg_rating / 5) + 0.5 * effectiveness.success_rate
            total += w.effectiveness * eff
        else:
            total += w.default_effectiveness

        if fragment.usage_count:
            total += w.usage * min(fragment.usage_count / w.usage_saturation, 1.0)

        if fragment.auto_include:
            total += w.auto_include_bonus

        if self._is_stale(fragment):
            total *= w.stale_penalty

        return min(max(total, 0.0), 1.0)

    def score_many(
        self,
        fragments: Iterable[Fragment],
        prompt_embedding: Sequence[float] | None = None,
        effectiveness: Mapping[str, Effectiveness] | None = None,
    ) -> list[ScoredFragment]:
        """Score a collection, looking up effectiveness by fragment id."""
        effectiveness = effectiveness or {}
        return [
            ScoredFragment(
                fragment=f,
                score=self.score(f, prompt_embedding, effectiveness.get(f.id)),
            )
            for f in fragments
        ]

    def _is_stale(self, fragment: Fragment) -> bool:
        if fragment.last_used_at is None:
            return False
        age = as_utc(self.now) - as_utc(fragment.last_used_at)
        return age > timedelta(days=self.weights.stale_after_days)
