"""Shared text rendering for assembled and composed context."""

from __future__ import annotations

from collections.abc import Iterable

from ctxlayer.fragments.models import Fragment


def render_block(
    fragment: Fragment,
    include_headers: bool = True,
    separator: str = "\n\n",
    content: str | None = None,
) -> str:
    """Render one fragment, optionally under a ``### name`` header.

    ``content`` overrides the fragment's own content (used for subtrees that
    were already assembled).
    """
    body = fragment.content if content is None else content
    if not include_headers:
        return body

    header = f"### {fragment.name}"
    if fragment.description:
        header += f"\n{fragment.description}"
    return f"{header}{separator}{body}"


def join_blocks(blocks: Iterable[str], separator: str = "\n\n") -> str:
    return separator.join(b for b in blocks if b)
