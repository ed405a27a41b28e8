"""Rich-powered console output for ctxlayer."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ctxlayer import __version__
from ctxlayer.context.models import (
    ComposedContext,
    Diagnostic,
    Recommendation,
    ResolutionResult,
    ScoredFragment,
)
from ctxlayer.fragments.models import Fragment


class Console:
    """Terminal output for ctxlayer using Rich."""

    def __init__(self, stderr: bool = False) -> None:
        self.console = RichConsole(stderr=stderr)

    def banner(self) -> None:
        """Show the ctxlayer banner."""
        self.console.print(
            Panel(
                f"[bold cyan]ctxlayer[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Bounded, dependency-ordered context for language models[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def show_diagnostics(self, diagnostics: list[Diagnostic]) -> None:
        for d in diagnostics:
            self.warning(f"[dim]{d.kind.value}[/dim] {d.message}")

    def show_tree(self, root: Fragment, levels: list[tuple[Fragment, int]]) -> None:
        """Display a composition tree from (fragment, depth) pairs in walk order."""
        tree = Tree(f"[bold cyan]{root.name}[/bold cyan] [dim]({root.layer_type.value})[/dim]")
        depth_nodes: dict[int, Tree] = {0: tree}

        for fragment, depth in levels:
            parent = depth_nodes.get(depth - 1, tree)
            node = parent.add(
                f"[bold]{fragment.name}[/bold] [dim]({fragment.layer_type.value}, "
                f"~{fragment.token_count}tok)[/dim]"
            )
            depth_nodes[depth] = node

        self.console.print(tree)

    def show_resolution(self, result: ResolutionResult, names: dict[str, str]) -> None:
        """Display resolved fragments in dependency order, plus conflicts."""
        table = Table(title="Resolved Context", border_style="cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Fragment", style="bold")
        table.add_column("Id", style="cyan")

        for i, fid in enumerate(result.order, start=1):
            table.add_row(str(i), names.get(fid, fid), fid)
        self.console.print(table)

        for entry in result.conflicts:
            others = ", ".join(names.get(c, c) for c in entry.conflicts_with)
            self.warning(f"{names.get(entry.fragment_id, entry.fragment_id)} conflicts with {others}")
        self.show_diagnostics(result.diagnostics)

    def show_scores(self, scored: list[ScoredFragment]) -> None:
        table = Table(title="Relevance Scores", border_style="cyan")
        table.add_column("Fragment", style="bold")
        table.add_column("Type")
        table.add_column("Priority", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Score", justify="right", style="cyan")

        for s in sorted(scored, key=lambda x: x.score, reverse=True):
            f = s.fragment
            table.add_row(
                f.name, f.layer_type.value, str(f.priority), str(f.token_count), f"{s.score:.3f}"
            )
        self.console.print(table)

    def show_context_summary(self, ctx: ComposedContext) -> None:
        used = ctx.budget_used_pct
        color = "green" if used <= 80 else "yellow"
        lines = [
            f"[bold]Strategy:[/bold] {ctx.strategy.value}",
            f"[bold]Tokens:[/bold] [{color}]{ctx.total_tokens:,} / {ctx.max_tokens:,} "
            f"({used:.0f}%)[/{color}]",
            f"[bold]Fragments:[/bold] {len(ctx.components)} included, {len(ctx.skipped)} skipped",
        ]
        if ctx.total_score is not None:
            lines.append(f"[bold]Total score:[/bold] {ctx.total_score:.3f}")
        self.console.print(Panel("\n".join(lines), title="[bold]Context[/bold]", border_style="cyan"))

        for entry in ctx.conflicts:
            self.warning(f"{entry.fragment_id} conflicts with {', '.join(entry.conflicts_with)}")
        self.show_diagnostics(ctx.diagnostics)

    def show_recommendations(self, recs: list[Recommendation]) -> None:
        for r in recs:
            self.console.print(
                f"  [bold]{r.name}[/bold] [dim]({r.fragment_id})[/dim] "
                f"matched [cyan]{', '.join(r.matched)}[/cyan] "
                f"[dim]used {r.usage_count}x[/dim]"
            )
