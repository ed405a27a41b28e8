"""Command-line interface for ctxlayer."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError as PydanticValidationError

from ctxlayer import __version__
from ctxlayer.config import (
    EngineConfig,
    find_project_root,
    get_bundle_path,
    load_config,
    save_config,
    set_config_value,
)
from ctxlayer.exceptions import CtxLayerError
from ctxlayer.fragments.models import active_fragments
from ctxlayer.sources import FragmentBundle, load_bundle, save_bundle
from ctxlayer.ui.console import Console

console = Console()


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No ctxlayer project found. Run 'ctxlayer init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load(bundle: str | None, path: str | None) -> tuple[FragmentBundle, EngineConfig]:
    """Load the fragment bundle and the config that applies to it."""
    try:
        if bundle:
            root = Path(path).resolve() if path else find_project_root()
            config = load_config(root) if root else EngineConfig()
            return load_bundle(bundle), config

        root = _get_project_root(path)
        config = load_config(root)
        return load_bundle(get_bundle_path(root, config)), config
    except CtxLayerError as e:
        console.error(str(e))
        sys.exit(1)


def _read_embedding(path: str | None) -> list[float] | None:
    if not path:
        return None
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        console.error(f"Cannot read prompt embedding {path}: {e}")
        sys.exit(1)
    if not isinstance(data, list) or not all(isinstance(x, (int, float)) for x in data):
        console.error("Prompt embedding must be a JSON array of numbers")
        sys.exit(1)
    return [float(x) for x in data]


def _names(bundle: FragmentBundle) -> dict[str, str]:
    return {f.id: f.name for f in bundle.fragments}


bundle_option = click.option(
    "--bundle", "-B", default=None, help="Fragment bundle JSON (default: project bundle)."
)
path_option = click.option("--path", "-p", default=None, help="Path to the project root.")


@click.group()
@click.version_option(version=__version__, prog_name="ctxlayer")
@click.option("--verbose", "-v", is_flag=True, help="Log engine diagnostics to stderr.")
def main(verbose: bool):
    """ctxlayer - assemble bounded, dependency-ordered context for LLM prompts."""
    if verbose:
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(console=Console(stderr=True).console, show_path=False)],
        )


@main.command()
@path_option
def init(path: str | None):
    """Initialize a ctxlayer project with a default config and an empty bundle."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing ctxlayer for: {root}")

    try:
        config = load_config(root)
    except CtxLayerError as e:
        console.error(str(e))
        sys.exit(1)
    config.name = root.name
    save_config(root, config)
    console.success("Configuration saved")

    bundle_path = get_bundle_path(root, config)
    if not bundle_path.exists():
        save_bundle(FragmentBundle(), bundle_path)
        console.success(f"Created empty bundle at {bundle_path}")


# =========================================================================
# Engine commands
# =========================================================================

@main.command()
@click.argument("root_id")
@bundle_option
@path_option
@click.option("--budget", "-b", default=None, type=int, help="Token budget.")
@click.option("--max-depth", "-d", default=None, type=int, help="Maximum composition depth.")
@click.option("--required-only", is_flag=True, help="Leave out optional children.")
@click.option("--no-headers", is_flag=True, help="Do not prefix children with headers.")
@click.option("--tree", is_flag=True, help="Show the composition tree instead of the text.")
def assemble(
    root_id: str, bundle: str | None, path: str | None, budget: int | None,
    max_depth: int | None, required_only: bool, no_headers: bool, tree: bool,
):
    """Flatten the composition tree under ROOT_ID into one text block."""
    from ctxlayer.context.assembler import HierarchicalAssembler

    data, config = _load(bundle, path)
    updates: dict = {}
    if budget is not None:
        updates["max_tokens"] = budget
    if max_depth is not None:
        updates["max_depth"] = max_depth
    if required_only:
        updates["include_optional"] = False
    if no_headers:
        updates["include_headers"] = False

    try:
        options = config.assembly.model_validate({**config.assembly.model_dump(), **updates})
    except PydanticValidationError as e:
        console.error(f"Invalid options: {e}")
        sys.exit(1)

    composition = data.composition_graph()
    if tree:
        active = {f.id: f for f in active_fragments(data.fragments)}
        root = active.get(root_id)
        if root is None:
            console.error(f"Fragment not found, deleted or expired: {root_id}")
            sys.exit(1)
        walk = composition.walk(
            root_id,
            options.max_depth,
            include_optional=options.include_optional,
            keep=active.__contains__,
        )
        levels = [(active[fid], depth) for fid, depth in walk]
        console.show_tree(root, levels)
        return

    assembler = HierarchicalAssembler(data.fragments, composition)
    try:
        result = assembler.assemble(root_id, options)
    except CtxLayerError as e:
        console.error(str(e))
        sys.exit(1)

    console.show_diagnostics(result.diagnostics)
    click.echo(result.text)


@main.command()
@click.argument("seed_ids", nargs=-1, required=True)
@bundle_option
@path_option
@click.option("--max-depth", "-d", default=None, type=int, help="Maximum resolution depth.")
@click.option("--recommendations", is_flag=True, help="Follow strong 'recommends' edges.")
@click.option("--min-strength", default=None, type=float, help="Minimum recommendation strength.")
def resolve(
    seed_ids: tuple[str, ...], bundle: str | None, path: str | None,
    max_depth: int | None, recommendations: bool, min_strength: float | None,
):
    """Resolve the dependencies of SEED_IDS and print them in dependency order."""
    from ctxlayer.context.resolver import DependencyResolver

    data, config = _load(bundle, path)
    updates: dict = {}
    if max_depth is not None:
        updates["max_depth"] = max_depth
    if recommendations:
        updates["include_recommendations"] = True
    if min_strength is not None:
        updates["min_recommendation_strength"] = min_strength

    try:
        options = config.resolution.model_validate({**config.resolution.model_dump(), **updates})
    except PydanticValidationError as e:
        console.error(f"Invalid options: {e}")
        sys.exit(1)

    resolver = DependencyResolver(data.fragments, data.relationship_graph())
    result = resolver.resolve(list(seed_ids), options)
    console.show_resolution(result, _names(data))


@main.command()
@bundle_option
@path_option
@click.option("--prompt-embedding", "-e", default=None, help="JSON file with the prompt vector.")
def score(bundle: str | None, path: str | None, prompt_embedding: str | None):
    """Score every active fragment for relevance."""
    from ctxlayer.context.scoring import RelevanceScorer

    data, config = _load(bundle, path)
    scorer = RelevanceScorer(config.scoring)
    scored = scorer.score_many(active_fragments(data.fragments), _read_embedding(prompt_embedding))
    if not scored:
        console.warning("No active fragments in bundle.")
        return
    console.show_scores(scored)


@main.command()
@click.argument("seed_ids", nargs=-1)
@bundle_option
@path_option
@click.option("--budget", "-b", default=None, type=int, help="Token budget.")
@click.option(
    "--strategy", "-s",
    type=click.Choice(["greedy", "optimal"]),
    default=None,
    help="Selection strategy (default from config: optimal).",
)
@click.option(
    "--format", "-f", "fmt",
    type=click.Choice(["text", "markdown", "json"]),
    default=None,
    help="Output format.",
)
@click.option("--prompt-embedding", "-e", default=None, help="JSON file with the prompt vector.")
@click.option("--auto-only", is_flag=True, help="Greedy build over auto-include fragments only.")
def build(
    seed_ids: tuple[str, ...], bundle: str | None, path: str | None, budget: int | None,
    strategy: str | None, fmt: str | None, prompt_embedding: str | None, auto_only: bool,
):
    """Build the budgeted context block.

    With SEED_IDS, the seeds (plus auto-include fragments) are expanded
    through their dependencies first; otherwise every fragment in the bundle
    is a candidate.

    Examples:

        ctxlayer build --budget 4000

        ctxlayer build task-auth --strategy optimal -e prompt.json

        ctxlayer build --strategy greedy --format json
    """
    from ctxlayer.context.composer import ContextComposer
    from ctxlayer.context.models import BuildStrategy, OutputFormat
    from ctxlayer.context.resolver import DependencyResolver
    from ctxlayer.context.scoring import RelevanceScorer

    data, config = _load(bundle, path)
    max_tokens = budget if budget is not None else config.budget.max_tokens
    chosen = BuildStrategy(strategy) if strategy else config.budget.strategy
    output = OutputFormat(fmt) if fmt else config.budget.format
    embedding = _read_embedding(prompt_embedding)

    composer = ContextComposer(
        scorer=RelevanceScorer(config.scoring),
        include_headers=config.assembly.include_headers,
        separator=config.assembly.separator,
    )
    relationships = data.relationship_graph()

    try:
        if chosen == BuildStrategy.GREEDY:
            candidates = data.fragments
            if seed_ids:
                seeds = list(seed_ids)
                if config.budget.include_auto:
                    seeds += [
                        f.id for f in active_fragments(data.fragments)
                        if f.auto_include and f.id not in seeds
                    ]
                resolver = DependencyResolver(data.fragments, relationships)
                resolved = resolver.resolve(seeds, config.resolution)
                candidates = data.get_fragments(resolved.resolved)
            ctx = composer.build_greedy(candidates, max_tokens, auto_include_only=auto_only)
        elif seed_ids:
            ctx = composer.compose(
                list(seed_ids),
                data.fragments,
                relationships,
                max_tokens=max_tokens,
                prompt_embedding=embedding,
                resolution=config.resolution,
                include_auto=config.budget.include_auto,
            )
        else:
            ctx = composer.build_optimal(data.fragments, max_tokens, prompt_embedding=embedding)
    except CtxLayerError as e:
        console.error(str(e))
        sys.exit(1)

    if output != OutputFormat.JSON:
        console.show_context_summary(ctx)
    click.echo(ctx.render(output))


@main.command()
@click.argument("prompt")
@bundle_option
@path_option
@click.option("--limit", "-n", default=5, type=int, help="Maximum recommendations.")
def recommend(prompt: str, bundle: str | None, path: str | None, limit: int):
    """Suggest fragments whose tags or text match PROMPT."""
    from ctxlayer.context.recommend import recommend as recommend_fragments

    data, _ = _load(bundle, path)
    recs = recommend_fragments(prompt, data.fragments, limit=limit)
    if not recs:
        console.info("No matching fragments.")
        return
    console.show_recommendations(recs)


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@path_option
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage ctxlayer configuration."""
    root = _get_project_root(path)
    try:
        config = load_config(root)
    except CtxLayerError as e:
        console.error(str(e))
        sys.exit(1)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(mode="json"), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: ctxlayer config get <key>")
            sys.exit(1)
        data = config.model_dump(mode="json")
        parts = key.split(".")
        for part in parts:
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: ctxlayer config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except PydanticValidationError as e:
            console.error(f"Invalid value for {key}: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
