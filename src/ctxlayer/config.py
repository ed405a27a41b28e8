"""Configuration management for ctxlayer."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ctxlayer.context.models import (
    DEFAULT_MAX_TOKENS,
    AssemblyOptions,
    BuildStrategy,
    OutputFormat,
    ResolutionOptions,
)
from ctxlayer.context.scoring import ScoringWeights
from ctxlayer.exceptions import ConfigError

CTXLAYER_DIR = ".ctxlayer"
CONFIG_FILE = "config.json"
BUNDLE_FILE = "bundle.json"


class BudgetConfig(BaseModel):
    """Defaults for budgeted builds."""

    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=0)
    strategy: BuildStrategy = BuildStrategy.OPTIMAL
    format: OutputFormat = OutputFormat.TEXT
    include_auto: bool = True


class EngineConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    bundle_path: str = ""  # Empty means .ctxlayer/bundle.json
    assembly: AssemblyOptions = Field(default_factory=AssemblyOptions)
    resolution: ResolutionOptions = Field(default_factory=ResolutionOptions)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Nearest directory at or above `start` that holds a .ctxlayer directory."""
    here = (start or Path.cwd()).resolve()
    return next((d for d in (here, *here.parents) if get_ctxlayer_dir(d).is_dir()), None)


def get_ctxlayer_dir(root: Path) -> Path:
    """Get the .ctxlayer directory for a project root."""
    return root / CTXLAYER_DIR


def get_bundle_path(root: Path, config: EngineConfig) -> Path:
    if config.bundle_path:
        path = Path(config.bundle_path)
        return path if path.is_absolute() else root / path
    return get_ctxlayer_dir(root) / BUNDLE_FILE


def load_config(root: Path) -> EngineConfig:
    """Load configuration from .ctxlayer/config.json."""
    config_path = get_ctxlayer_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return EngineConfig(**data)
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
    return EngineConfig(name=root.name)


def save_config(root: Path, config: EngineConfig) -> Path:
    """Write the config to .ctxlayer/config.json and return that path."""
    config_path = get_ctxlayer_dir(root) / CONFIG_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(config.model_dump_json(indent=2) + "\n")
    return config_path


def set_config_value(config: EngineConfig, key: str, value: Any) -> EngineConfig:
    """Return a copy with one setting replaced, e.g. ``budget.max_tokens``.

    Only leaf settings can be set; naming a whole section raises ``KeyError``
    like any unknown key. The result is validated again.
    """
    *sections, leaf = key.split(".")
    data = config.model_dump(mode="json")
    target: Any = data
    for section in sections:
        target = target.get(section) if isinstance(target, dict) else None
    if not isinstance(target, dict) or leaf not in target or isinstance(target[leaf], dict):
        raise KeyError(f"Invalid config key: {key}")
    target[leaf] = value
    return EngineConfig.model_validate(data)
