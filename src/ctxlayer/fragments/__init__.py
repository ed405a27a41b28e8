"""Context fragments and the edges that connect them."""

from ctxlayer.fragments.models import (
    CompositionEdge,
    Effectiveness,
    Fragment,
    LayerType,
    RelationshipEdge,
    RelationshipType,
    TokenEstimator,
    active_fragments,
)

__all__ = [
    "CompositionEdge",
    "Effectiveness",
    "Fragment",
    "LayerType",
    "RelationshipEdge",
    "RelationshipType",
    "TokenEstimator",
    "active_fragments",
]
