"""Data models for context assembly, resolution and selection."""

from __future__ import annotations

import json
from enum import Enum

from pydantic import BaseModel, Field

from ctxlayer.fragments.models import Fragment, LayerType

# Default combined budget for a single request
DEFAULT_MAX_TOKENS = 8000


class DiagnosticKind(str, Enum):
    """Structural anomaly the engine degraded around instead of failing."""

    CYCLE = "cycle"  # Fragment reached again within its own branch
    DEPTH_LIMIT = "depth_limit"
    BUDGET_OVERFLOW = "budget_overflow"
    MISSING_FRAGMENT = "missing_fragment"  # Unknown, deleted or expired
    DEPENDENCY_CYCLE = "dependency_cycle"  # Topological order fell back


class Diagnostic(BaseModel):
    """A logged degradation attached to an otherwise complete result."""

    kind: DiagnosticKind
    fragment_id: str = ""
    message: str = ""


class BuildStrategy(str, Enum):
    """How the composer picks fragments under a budget."""

    GREEDY = "greedy"  # Highest priority first
    OPTIMAL = "optimal"  # Relevance-scored 0/1 knapsack


class OutputFormat(str, Enum):
    TEXT = "text"
    MARKDOWN = "markdown"
    JSON = "json"


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

class AssemblyOptions(BaseModel):
    """Options for flattening a composition tree."""

    max_depth: int = Field(default=5, ge=0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=0)
    include_optional: bool = True
    separator: str = "\n\n"
    include_headers: bool = True


class ResolutionOptions(BaseModel):
    """Options for dependency resolution."""

    max_depth: int = Field(default=5, ge=0)
    include_recommendations: bool = False
    min_recommendation_strength: float = Field(default=0.7, ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class AssemblyResult(BaseModel):
    """Flattened composition tree."""

    root_id: str
    text: str
    total_tokens: int = 0
    included: list[str] = Field(default_factory=list)  # Render order, root first
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class ConflictEntry(BaseModel):
    """A resolved fragment that conflicts with fragments already resolved."""

    fragment_id: str
    conflicts_with: list[str] = Field(default_factory=list)


class ResolutionResult(BaseModel):
    """Transitive closure of a seed set plus detected conflicts."""

    resolved: list[str] = Field(default_factory=list)  # Always contains every seed
    conflicts: list[ConflictEntry] = Field(default_factory=list)
    order: list[str] = Field(default_factory=list)  # Dependencies before dependents
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0


class ScoredFragment(BaseModel):
    """A fragment paired with its relevance score."""

    fragment: Fragment
    score: float = 0.0

    @property
    def tokens(self) -> int:
        return self.fragment.token_count or 0


class SelectionResult(BaseModel):
    """Outcome of budgeted subset selection."""

    selected: list[ScoredFragment] = Field(default_factory=list)
    total_score: float = 0.0
    total_tokens: int = 0
    unused_tokens: int = 0
    max_tokens: int = 0

    @property
    def fragments(self) -> list[Fragment]:
        return [s.fragment for s in self.selected]


class ComponentSummary(BaseModel):
    """One fragment as it appears in a composed context."""

    id: str
    name: str
    layer_type: LayerType
    tokens: int
    score: float | None = None
    content: str = ""  # Rendered block, header included


class ComposedContext(BaseModel):
    """The final context block handed to a language model."""

    text: str = ""
    strategy: BuildStrategy
    components: list[ComponentSummary] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    total_tokens: int = 0
    max_tokens: int = DEFAULT_MAX_TOKENS
    total_score: float | None = None
    conflicts: list[ConflictEntry] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def unused_tokens(self) -> int:
        return max(self.max_tokens - self.total_tokens, 0)

    @property
    def budget_used_pct(self) -> float:
        return round(self.total_tokens / max(self.max_tokens, 1) * 100, 1)

    def render(self, fmt: OutputFormat = OutputFormat.TEXT) -> str:
        """Render for LLM consumption."""
        if fmt == OutputFormat.JSON:
            return json.dumps(
                [
                    {"id": c.id, "type": c.layer_type.value, "content": c.content}
                    for c in self.components
                ],
                indent=2,
            )
        if fmt == OutputFormat.MARKDOWN:
            if not self.components:
                return ""
            return "\n".join(["---", "# Context", "", self.text, "---", ""])
        return self.text

    def summary(self) -> str:
        """Human-readable summary of what made it into the context."""
        lines = [
            f"Context ({self.strategy.value})",
            f"Tokens: {self.total_tokens:,} / {self.max_tokens:,} ({self.budget_used_pct:.0f}%)",
            f"Fragments: {len(self.components)} included, {len(self.skipped)} skipped",
        ]
        if self.total_score is not None:
            lines.append(f"Total score: {self.total_score:.3f}")
        lines.append("")
        for c in self.components:
            score = f" score={c.score:.2f}" if c.score is not None else ""
            lines.append(f"  > {c.name} ({c.layer_type.value}) ~{c.tokens}tok{score}")
        for entry in self.conflicts:
            lines.append(f"  ! {entry.fragment_id} conflicts with {', '.join(entry.conflicts_with)}")
        return "\n".join(lines)


class Recommendation(BaseModel):
    """A fragment suggested for a prompt by keyword match."""

    fragment_id: str
    name: str
    score: int = 0  # Number of matched keywords
    matched: list[str] = Field(default_factory=list)
    usage_count: int = 0
