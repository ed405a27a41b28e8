"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from ctxlayer.config import (
    EngineConfig,
    find_project_root,
    get_bundle_path,
    load_config,
    save_config,
    set_config_value,
)
from ctxlayer.context.models import BuildStrategy
from ctxlayer.exceptions import ConfigError


class TestConfig:
    def test_default_config(self):
        config = EngineConfig()
        assert config.budget.max_tokens == 8000
        assert config.budget.strategy == BuildStrategy.OPTIMAL
        assert config.assembly.max_depth == 5
        assert config.resolution.min_recommendation_strength == 0.7
        assert config.scoring.stale_after_days == 90

    def test_save_and_load(self, tmp_path: Path):
        config = EngineConfig(name="test-project")
        config.budget.max_tokens = 4000
        config.budget.strategy = BuildStrategy.GREEDY

        save_config(tmp_path, config)
        loaded = load_config(tmp_path)

        assert loaded.name == "test-project"
        assert loaded.budget.max_tokens == 4000
        assert loaded.budget.strategy == BuildStrategy.GREEDY

    def test_load_missing_uses_defaults(self, tmp_path: Path):
        config = load_config(tmp_path)
        assert config.name == tmp_path.name
        assert config.budget.max_tokens == 8000

    def test_load_invalid(self, tmp_path: Path):
        (tmp_path / ".ctxlayer").mkdir()
        (tmp_path / ".ctxlayer" / "config.json").write_text("{broken")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_find_project_root(self, tmp_path: Path):
        # No .ctxlayer dir - should return None
        assert find_project_root(tmp_path) is None

        (tmp_path / ".ctxlayer").mkdir()
        assert find_project_root(tmp_path) == tmp_path

        # Should find from subdirectory
        sub = tmp_path / "docs" / "notes"
        sub.mkdir(parents=True)
        assert find_project_root(sub) == tmp_path

    def test_set_config_nested(self):
        config = EngineConfig()
        updated = set_config_value(config, "budget.max_tokens", 2000)
        assert updated.budget.max_tokens == 2000
        assert config.budget.max_tokens == 8000

    def test_set_config_enum(self):
        updated = set_config_value(EngineConfig(), "budget.strategy", "greedy")
        assert updated.budget.strategy == BuildStrategy.GREEDY

    def test_set_config_invalid_key(self):
        with pytest.raises(KeyError):
            set_config_value(EngineConfig(), "nonexistent.key", "value")

    def test_set_config_invalid_value(self):
        with pytest.raises(PydanticValidationError):
            set_config_value(EngineConfig(), "budget.max_tokens", -1)

    def test_bundle_path(self, tmp_path: Path):
        assert get_bundle_path(tmp_path, EngineConfig()) == tmp_path / ".ctxlayer" / "bundle.json"
        relative = EngineConfig(bundle_path="data/frags.json")
        assert get_bundle_path(tmp_path, relative) == tmp_path / "data" / "frags.json"
        absolute = EngineConfig(bundle_path=str(tmp_path / "elsewhere.json"))
        assert get_bundle_path(Path("/other"), absolute) == tmp_path / "elsewhere.json"

    def test_save_returns_written_path(self, tmp_path: Path):
        path = save_config(tmp_path, EngineConfig(name="demo"))
        assert path == tmp_path / ".ctxlayer" / "config.json"
        assert find_project_root(tmp_path) == tmp_path

    def test_set_config_section_rejected(self):
        with pytest.raises(KeyError):
            set_config_value(EngineConfig(), "budget", {"max_tokens": 1})
        with pytest.raises(KeyError):
            set_config_value(EngineConfig(), "budget.max_tokens.value", 1)
