"""Read-only data sources the engine consumes.

The engine never fetches anything itself: request handlers load fragments
and edges from their store and hand them over. ``FragmentBundle`` is the
in-memory implementation used by the CLI and tests; it round-trips through
a JSON document of the form::

    {"fragments": [...], "composition": [...], "relationships": [...]}
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ctxlayer.exceptions import BundleError
from ctxlayer.fragments.models import (
    CompositionEdge,
    Fragment,
    RelationshipEdge,
    active_fragments,
)
from ctxlayer.graph.composition import CompositionGraph
from ctxlayer.graph.relationships import RelationshipGraph


class FragmentSource(ABC):
    """Looks up fragments by id."""

    @abstractmethod
    def get_fragments(self, ids: Iterable[str], now: datetime | None = None) -> list[Fragment]:
        """Return matching fragments, excluding deleted and expired ones."""
        ...


class CompositionSource(ABC):
    """Looks up composition edges by parent."""

    @abstractmethod
    def get_children(self, parent_id: str) -> list[CompositionEdge]:
        """Return the parent's child edges in composition order."""
        ...


class RelationshipSource(ABC):
    """Looks up relationship edges touching a set of fragments."""

    @abstractmethod
    def get_relationships(self, ids: Iterable[str]) -> list[RelationshipEdge]:
        """Return edges whose source or target is in ``ids``."""
        ...


class EmbeddingProvider(ABC):
    """Turns text into a fixed-length vector (an external AI service)."""

    dimensions: int = 384

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        ...


class FragmentBundle(BaseModel, FragmentSource, CompositionSource, RelationshipSource):
    """Fragments and edges held in memory."""

    fragments: list[Fragment] = Field(default_factory=list)
    composition: list[CompositionEdge] = Field(default_factory=list)
    relationships: list[RelationshipEdge] = Field(default_factory=list)

    def get_fragments(self, ids: Iterable[str], now: datetime | None = None) -> list[Fragment]:
        wanted = set(ids)
        return active_fragments((f for f in self.fragments if f.id in wanted), now)

    def get_fragment(self, fragment_id: str) -> Fragment | None:
        for fragment in self.fragments:
            if fragment.id == fragment_id:
                return fragment
        return None

    def get_children(self, parent_id: str) -> list[CompositionEdge]:
        return self.composition_graph().children(parent_id)

    def get_relationships(self, ids: Iterable[str]) -> list[RelationshipEdge]:
        return self.relationship_graph().touching(ids)

    def composition_graph(self) -> CompositionGraph:
        return CompositionGraph(self.composition)

    def relationship_graph(self) -> RelationshipGraph:
        return RelationshipGraph(self.relationships)


def load_bundle(path: str | Path) -> FragmentBundle:
    """Load a bundle from a JSON file.

    Raises:
        BundleError: if the file is missing, not JSON, or fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise BundleError(str(path), "file does not exist")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise BundleError(str(path), f"invalid JSON ({e.msg} at line {e.lineno})") from e
    try:
        return FragmentBundle.model_validate(data)
    except PydanticValidationError as e:
        raise BundleError(str(path), f"{e.error_count()} validation error(s)\n{e}") from e


def save_bundle(bundle: FragmentBundle, path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(bundle.model_dump_json(indent=2, exclude_none=True), encoding="utf-8")
