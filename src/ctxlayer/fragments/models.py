"""Data models for context fragments and the edges between them."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, model_validator

# Session fragments live for 24 hours unless told otherwise
SESSION_LIFETIME = timedelta(hours=24)


class LayerType(str, Enum):
    """Kind of knowledge a fragment carries."""

    PROFILE = "profile"  # Who the user is; usually always included
    PROJECT = "project"
    TASK = "task"
    SNIPPET = "snippet"
    SESSION = "session"  # Temporary, expires
    ADHOC = "adhoc"


# Layer types that are auto-included unless a fragment says otherwise
_AUTO_INCLUDE_DEFAULTS: dict[LayerType, bool] = {
    LayerType.PROFILE: True,
    LayerType.SESSION: True,
}


class RelationshipType(str, Enum):
    """Semantic relation between two fragments (source -> target)."""

    REQUIRES = "requires"
    EXTENDS = "extends"
    CONFLICTS = "conflicts"
    RECOMMENDS = "recommends"
    USES = "uses"
    REPLACES = "replaces"


# Edge types that make the target a prerequisite of the source
DEPENDENCY_TYPES = frozenset({RelationshipType.REQUIRES, RelationshipType.EXTENDS})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TokenEstimator:
    """Estimate token counts for fragment text."""

    # Rough heuristic: 1 token ≈ 4 characters of English text
    CHARS_PER_TOKEN = 4

    @classmethod
    def estimate(cls, text: str) -> int:
        """Estimate token count for a string (0 for empty text)."""
        if not text:
            return 0
        return math.ceil(len(text) / cls.CHARS_PER_TOKEN)

    @classmethod
    def total(cls, fragments: Iterable[Fragment]) -> int:
        """Combined token count of several fragments."""
        return sum(f.token_count for f in fragments)


class Fragment(BaseModel):
    """A single unit of reusable context."""

    id: str
    name: str = ""
    description: str = ""
    content: str
    layer_type: LayerType = LayerType.ADHOC
    tags: list[str] = Field(default_factory=list)
    token_count: int | None = Field(default=None, ge=0)
    priority: int = Field(default=5, ge=1, le=10)
    auto_include: bool | None = None
    embedding: list[float] | None = None
    usage_count: int = Field(default=0, ge=0)
    avg_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    last_used_at: datetime | None = None
    expires_at: datetime | None = None
    deleted_at: datetime | None = None

    @model_validator(mode="after")
    def _fill_defaults(self) -> Fragment:
        if not self.name:
            self.name = self.id
        if self.token_count is None:
            self.token_count = TokenEstimator.estimate(self.content)
        if self.auto_include is None:
            self.auto_include = _AUTO_INCLUDE_DEFAULTS.get(self.layer_type, False)
        return self

    @classmethod
    def new_session(cls, id: str, content: str, now: datetime | None = None, **kwargs) -> Fragment:
        """Create a session fragment that expires one session lifetime from now."""
        kwargs.setdefault("expires_at", (now or utcnow()) + SESSION_LIFETIME)
        return cls(id=id, content=content, layer_type=LayerType.SESSION, **kwargs)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.layer_type != LayerType.SESSION or self.expires_at is None:
            return False
        return as_utc(self.expires_at) < as_utc(now or utcnow())

    def is_active(self, now: datetime | None = None) -> bool:
        """Soft-deleted and expired session fragments are invisible to the engine."""
        return self.deleted_at is None and not self.is_expired(now)


def active_fragments(
    fragments: Iterable[Fragment], now: datetime | None = None
) -> list[Fragment]:
    """Drop deleted and expired fragments, preserving order."""
    now = now or utcnow()
    return [f for f in fragments if f.is_active(now)]


class CompositionEdge(BaseModel):
    """Parent -> child structural edge in a composition tree."""

    parent_id: str
    child_id: str
    order: int = 0
    is_required: bool = True


class RelationshipEdge(BaseModel):
    """Directed, typed semantic edge between two fragments."""

    source_id: str
    target_id: str
    type: RelationshipType
    strength: float = Field(default=1.0, ge=0.0, le=1.0)
    bidirectional: bool = False  # Informational; traversal is always source -> target

    @model_validator(mode="after")
    def _no_self_reference(self) -> RelationshipEdge:
        if self.source_id == self.target_id:
            raise ValueError(
                f"Relationship '{self.type.value}' cannot point from "
                f"'{self.source_id}' to itself"
            )
        return self

    @property
    def is_dependency(self) -> bool:
        return self.type in DEPENDENCY_TYPES


class Effectiveness(BaseModel):
    """Historical effectiveness of a fragment across past requests."""

    avg_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    success_rate: float = Field(default=0.5, ge=0.0, le=1.0)
