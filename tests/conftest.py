"""Shared test fixtures for ctxlayer."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from ctxlayer.fragments.models import (
    CompositionEdge,
    Fragment,
    LayerType,
    RelationshipEdge,
    RelationshipType,
)
from ctxlayer.sources import FragmentBundle, save_bundle


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_fragments() -> list[Fragment]:
    """A small fragment library: a profile, a project with a task, two snippets."""
    return [
        Fragment(
            id="me",
            name="profile",
            content="I am a backend engineer who prefers Python.",
            layer_type=LayerType.PROFILE,
            priority=8,
        ),
        Fragment(
            id="api",
            name="api",
            description="Service overview",
            content="The API is a FastAPI service backed by Postgres.",
            layer_type=LayerType.PROJECT,
            tags=["api", "postgres"],
            priority=7,
        ),
        Fragment(
            id="auth",
            name="auth",
            content="Implement token authentication for the API.",
            layer_type=LayerType.TASK,
            tags=["auth", "authentication"],
            priority=9,
            usage_count=12,
        ),
        Fragment(
            id="style",
            name="style",
            content="Use black formatting and type hints.",
            layer_type=LayerType.SNIPPET,
            priority=4,
        ),
        Fragment(
            id="legacy",
            name="legacy-style",
            content="Use tabs for indentation.",
            layer_type=LayerType.SNIPPET,
            priority=2,
        ),
    ]


@pytest.fixture
def sample_composition() -> list[CompositionEdge]:
    return [
        CompositionEdge(parent_id="api", child_id="auth", order=1),
        CompositionEdge(parent_id="api", child_id="style", order=2, is_required=False),
    ]


@pytest.fixture
def sample_relationships() -> list[RelationshipEdge]:
    return [
        RelationshipEdge(source_id="auth", target_id="api", type=RelationshipType.REQUIRES),
        RelationshipEdge(
            source_id="auth", target_id="style", type=RelationshipType.RECOMMENDS, strength=0.9
        ),
        RelationshipEdge(source_id="style", target_id="legacy", type=RelationshipType.CONFLICTS),
    ]


@pytest.fixture
def sample_bundle(sample_fragments, sample_composition, sample_relationships) -> FragmentBundle:
    return FragmentBundle(
        fragments=sample_fragments,
        composition=sample_composition,
        relationships=sample_relationships,
    )


@pytest.fixture
def bundle_file(tmp_path: Path, sample_bundle: FragmentBundle) -> Path:
    """The sample bundle written to a standalone JSON file."""
    path = tmp_path / "bundle.json"
    save_bundle(sample_bundle, path)
    return path
