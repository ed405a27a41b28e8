"""Context assembly, dependency resolution and budgeted selection.

Usage:
    from ctxlayer.context import ContextComposer, DependencyResolver

    resolver = DependencyResolver(fragments, relationships)
    resolution = resolver.resolve(["task-42"])

    composer = ContextComposer()
    ctx = composer.compose(["task-42"], fragments, relationships, max_tokens=4000)
    print(ctx.render())
"""

from ctxlayer.context.assembler import HierarchicalAssembler
from ctxlayer.context.composer import ContextComposer
from ctxlayer.context.models import (
    AssemblyOptions,
    AssemblyResult,
    ComposedContext,
    ResolutionOptions,
    ResolutionResult,
    SelectionResult,
)
from ctxlayer.context.optimizer import optimize_selection
from ctxlayer.context.resolver import DependencyResolver, order_by_dependencies
from ctxlayer.context.scoring import RelevanceScorer, cosine_similarity

__all__ = [
    "AssemblyOptions",
    "AssemblyResult",
    "ComposedContext",
    "ContextComposer",
    "DependencyResolver",
    "HierarchicalAssembler",
    "RelevanceScorer",
    "ResolutionOptions",
    "ResolutionResult",
    "SelectionResult",
    "cosine_similarity",
    "optimize_selection",
    "order_by_dependencies",
]
