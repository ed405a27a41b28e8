"""Composition and relationship graphs over context fragments."""

from ctxlayer.graph.composition import CompositionGraph
from ctxlayer.graph.relationships import RelationshipGraph

__all__ = ["CompositionGraph", "RelationshipGraph"]
