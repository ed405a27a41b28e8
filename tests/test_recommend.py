"""Tests for keyword recommendations."""

from __future__ import annotations

from datetime import datetime

from ctxlayer.context.recommend import MAX_KEYWORDS, extract_keywords, recommend
from ctxlayer.fragments.models import Fragment


class TestExtractKeywords:
    def test_filters_short_and_stop_words(self):
        words = extract_keywords("How do I add authentication to the API with Postgres?")
        assert words == ["authentication", "postgres"]

    def test_unique_in_order(self):
        assert extract_keywords("cache, Cache; CACHE layer") == ["cache", "layer"]

    def test_limit(self):
        text = " ".join(f"keyword{i}" for i in range(20))
        assert len(extract_keywords(text)) == MAX_KEYWORDS

    def test_empty(self):
        assert extract_keywords("a an the") == []


class TestRecommend:
    def test_matches_tags_and_content(self, sample_fragments):
        recs = recommend("Add authentication backed by postgres", sample_fragments)
        ids = [r.fragment_id for r in recs]
        assert "auth" in ids
        assert "api" in ids
        assert "legacy" not in ids

    def test_ranked_by_matches_then_usage(self):
        frags = [
            Fragment(id="one", content="caching notes", usage_count=100),
            Fragment(id="two", content="caching and redis notes"),
            Fragment(id="three", content="caching tips", usage_count=3),
        ]
        recs = recommend("redis caching", frags)
        assert [r.fragment_id for r in recs] == ["two", "one", "three"]
        assert recs[0].score == 2
        assert recs[0].matched == ["redis", "caching"]

    def test_limit(self, sample_fragments):
        assert len(recommend("style formatting indentation python api", sample_fragments, limit=2)) == 2

    def test_inactive_skipped(self, now: datetime):
        frags = [Fragment(id="gone", content="redis", deleted_at=now)]
        assert recommend("redis", frags, now=now) == []

    def test_no_keywords(self, sample_fragments):
        assert recommend("do it", sample_fragments) == []
