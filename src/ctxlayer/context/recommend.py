"""Keyword-based fragment recommendations for a prompt."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime

from ctxlayer.context.models import Recommendation
from ctxlayer.fragments.models import Fragment, active_fragments

_STOP_WORDS = {
    "this", "that", "with", "from", "have", "will", "what", "when", "where",
    "which", "there", "their", "about", "would", "could", "should", "into",
    "them", "then", "than", "some", "very", "just", "also",
}

MAX_KEYWORDS = 10


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Unique lower-cased words longer than three characters, stop words removed."""
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    keywords = [w for w in words if len(w) > 3 and w not in _STOP_WORDS]
    return list(dict.fromkeys(keywords))[:limit]


def recommend(
    prompt_text: str,
    fragments: Iterable[Fragment],
    limit: int = 5,
    now: datetime | None = None,
) -> list[Recommendation]:
    """Suggest fragments whose tags, name or content mention prompt keywords.

    Ranked by number of matched keywords, then by how often the fragment
    has been used.
    """
    keywords = extract_keywords(prompt_text)
    if not keywords:
        return []

    results: list[Recommendation] = []
    for fragment in active_fragments(fragments, now):
        tags = {t.lower() for t in fragment.tags}
        haystack = f"{fragment.name}\n{fragment.content}".lower()
        matched = [k for k in keywords if k in tags or k in haystack]
        if not matched:
            continue
        results.append(Recommendation(
            fragment_id=fragment.id,
            name=fragment.name,
            score=len(matched),
            matched=matched,
            usage_count=fragment.usage_count,
        ))

    results.sort(key=lambda r: (r.score, r.usage_count), reverse=True)
    return results[:limit]
