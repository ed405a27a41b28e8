"""Tests for budgeted knapsack selection."""

from __future__ import annotations

import itertools
import random

import pytest

from ctxlayer.context.models import ScoredFragment
from ctxlayer.context.optimizer import optimize_selection
from ctxlayer.context.scoring import RelevanceScorer
from ctxlayer.exceptions import ValidationError
from ctxlayer.fragments.models import Fragment


def _cand(id: str, tokens: int, score: float) -> ScoredFragment:
    return ScoredFragment(fragment=Fragment(id=id, content="x", token_count=tokens), score=score)


def _brute_force(candidates: list[ScoredFragment], budget: int) -> float:
    best = 0.0
    for r in range(len(candidates) + 1):
        for combo in itertools.combinations(candidates, r):
            if sum(c.tokens for c in combo) <= budget:
                best = max(best, sum(c.score for c in combo))
    return best


class TestOptimizeSelection:
    def test_oversized_fragment_excluded(self):
        frags = [
            Fragment(id="A", content="x", token_count=100, priority=9),
            Fragment(id="B", content="x", token_count=50, priority=5),
            Fragment(id="C", content="x", token_count=7000, priority=3),
        ]
        scored = RelevanceScorer().score_many(frags)
        result = optimize_selection(scored, 5000)
        assert [f.id for f in result.fragments] == ["A", "B"]
        assert result.total_tokens == 150
        assert result.unused_tokens == 4850

    def test_beats_greedy_by_score(self):
        candidates = [_cand("big", 60, 0.6), _cand("x", 50, 0.5), _cand("y", 50, 0.5)]
        result = optimize_selection(candidates, 100)
        assert [f.id for f in result.fragments] == ["x", "y"]
        assert result.total_score == pytest.approx(1.0)

    def test_keeps_input_order(self):
        candidates = [_cand("c", 10, 0.1), _cand("a", 10, 0.9), _cand("b", 10, 0.5)]
        result = optimize_selection(candidates, 100)
        assert [f.id for f in result.fragments] == ["c", "a", "b"]

    def test_exact_fit(self):
        result = optimize_selection([_cand("a", 40, 0.3), _cand("b", 60, 0.4)], 100)
        assert result.total_tokens == 100
        assert result.unused_tokens == 0

    def test_zero_budget_takes_free_fragments(self):
        result = optimize_selection([_cand("free", 0, 0.2), _cand("paid", 1, 0.9)], 0)
        assert [f.id for f in result.fragments] == ["free"]

    def test_empty(self):
        result = optimize_selection([], 500)
        assert result.selected == []
        assert result.total_score == 0.0
        assert result.unused_tokens == 500
        assert result.max_tokens == 500

    def test_negative_budget(self):
        with pytest.raises(ValidationError):
            optimize_selection([_cand("a", 1, 0.5)], -1)

    @pytest.mark.parametrize("seed", range(8))
    def test_matches_brute_force(self, seed: int):
        rng = random.Random(seed)
        n = rng.randint(1, 10)
        candidates = [
            _cand(f"f{i}", rng.randint(1, 50), round(rng.random(), 3)) for i in range(n)
        ]
        budget = rng.randint(0, 150)

        result = optimize_selection(candidates, budget)
        assert result.total_tokens <= budget
        assert result.total_score == pytest.approx(_brute_force(candidates, budget))
