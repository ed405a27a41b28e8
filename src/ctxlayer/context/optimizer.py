"""Budgeted selection: 0/1 knapsack over fragment scores and token costs.

Maximize  Σ score(f)  subject to  Σ tokens(f) ≤ B,  f ∈ X ⊆ candidates.

dp[i][t] is the best score reachable with the first i candidates inside t
tokens:

    dp[i][t] = max(dp[i-1][t], dp[i-1][t - c_i] + s_i)   if c_i ≤ t

Rows are numpy vectors, so each candidate costs one vectorized pass over the
budget. Only the previous score row is kept; the include/exclude decisions
are kept for every row so the chosen subset can be recovered by walking
back from dp[n][B]. Time and space are O(n · B), fine for tens of
candidates and budgets in the thousands.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ctxlayer.context.models import ScoredFragment, SelectionResult
from ctxlayer.exceptions import ValidationError


def optimize_selection(candidates: Sequence[ScoredFragment], max_tokens: int) -> SelectionResult:
    """Pick the score-maximizing subset of ``candidates`` within ``max_tokens``.

    Selected fragments keep their relative input order.

    Raises:
        ValidationError: if ``max_tokens`` is negative.
    """
    if max_tokens < 0:
        raise ValidationError(f"max_tokens must be >= 0, got {max_tokens}")

    # Anything larger than the whole budget can never be picked
    viable = [c for c in candidates if c.tokens <= max_tokens]
    n = len(viable)

    best = np.zeros(max_tokens + 1)
    take = np.zeros((n + 1, max_tokens + 1), dtype=bool)

    for i, cand in enumerate(viable, start=1):
        cost = cand.tokens
        with_item = best[: max_tokens + 1 - cost] + cand.score
        improves = with_item > best[cost:]

        row = best.copy()
        row[cost:][improves] = with_item[improves]
        take[i, cost:] = improves
        best = row

    chosen: list[ScoredFragment] = []
    remaining = max_tokens
    for i in range(n, 0, -1):
        if take[i, remaining]:
            cand = viable[i - 1]
            chosen.append(cand)
            remaining -= cand.tokens
    chosen.reverse()

    total_tokens = sum(c.tokens for c in chosen)
    return SelectionResult(
        selected=chosen,
        total_score=float(sum(c.score for c in chosen)),
        total_tokens=total_tokens,
        unused_tokens=max_tokens - total_tokens,
        max_tokens=max_tokens,
    )
