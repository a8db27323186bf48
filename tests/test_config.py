"""Tests for the config module."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from renderdiff.config import (
    CISettings,
    EngineConfig,
    EnvironmentConfig,
    OutputConfig,
    RenderDiffConfig,
    find_config_file,
    get_canonical_env_name,
    load_config,
    parse_output_modes,
    resolve_environment,
    save_config,
)
from renderdiff.errors import ConfigError


class TestEnvironmentConfig:
    """Tests for EnvironmentConfig dataclass."""

    def test_overlay_defaults_to_name(self):
        """Test the overlay directory falls back to the environment name."""
        env = EnvironmentConfig(name="staging")
        assert env.overlay_dir == "staging"
        assert env.aliases == []

    def test_explicit_overlay(self):
        env = EnvironmentConfig(name="prod", overlay="production", aliases=["prd"])
        assert env.overlay_dir == "production"


class TestRenderDiffConfig:
    """Tests for RenderDiffConfig."""

    def test_defaults(self):
        """Test default values."""
        config = RenderDiffConfig.get_default()
        assert config.overlays_dir == "argo-cd-apps/overlays"
        assert config.base_branch == "main"
        assert config.environments == []
        assert config.engine == EngineConfig()
        assert config.output == OutputConfig()
        assert config.output.modes == ["local"]
        assert config.github.comment_marker == "<!-- render-diff-comment -->"

    def test_from_dict(self):
        """Test creating config from a dictionary."""
        data: dict[str, Any] = {
            "overlays_dir": "apps/overlays",
            "base_branch": "develop",
            "environments": [
                {"name": "staging", "aliases": ["stg"]},
                {"name": "production", "overlay": "prod"},
            ],
            "engine": {"concurrency": 4, "stream_buffer": 5},
            "output": {"modes": "ci-summary, ci-comment", "color": "never"},
            "github": {"api_url": "https://ghe.example.com/api/v3"},
        }

        config = RenderDiffConfig.from_dict(data)

        assert config.overlays_dir == "apps/overlays"
        assert config.base_branch == "develop"
        assert [e.name for e in config.environments] == ["staging", "production"]
        assert config.environments[1].overlay_dir == "prod"
        assert config.engine.concurrency == 4
        assert config.engine.stream_buffer == 5
        assert config.output.modes == ["ci-summary", "ci-comment"]
        assert config.output.color == "never"
        assert config.github.api_url == "https://ghe.example.com/api/v3"
        assert config.github.timeout_seconds == 30.0

    def test_roundtrip(self):
        """Test to_dict/from_dict roundtrip."""
        config = RenderDiffConfig(
            environments=[EnvironmentConfig(name="staging", aliases=["stg"])],
            output=OutputConfig(modes=["local", "ci-artifact-dir"], output_dir="diffs"),
        )

        restored = RenderDiffConfig.from_dict(config.to_dict())

        assert restored == config

    def test_environment_without_name(self):
        with pytest.raises(ConfigError, match="name"):
            RenderDiffConfig.from_dict({"environments": [{"aliases": ["x"]}]})

    @pytest.mark.parametrize(
        "data",
        [
            {"engine": {"concurrency": -1}},
            {"engine": {"stream_buffer": 0}},
            {"output": {"color": "sometimes"}},
            {"output": {"modes": ["local", "email"]}},
            {"output": {"modes": "local,email"}},
        ],
    )
    def test_invalid_values(self, data: dict[str, Any]):
        """Test validation rejects values the tool cannot use."""
        with pytest.raises(ConfigError):
            RenderDiffConfig.from_dict(data)


class TestConfigFile:
    """Tests for finding, loading and saving the config file."""

    def test_find_config_walks_up(self, tmp_path: Path):
        (tmp_path / ".render-diff.yaml").write_text("base_branch: main\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert find_config_file(nested) == tmp_path / ".render-diff.yaml"

    def test_find_config_missing(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None

    def test_load_missing_returns_defaults(self, tmp_path: Path):
        config = load_config(config_path=tmp_path / "missing.yaml")
        assert config == RenderDiffConfig.get_default()

    def test_load_from_start_path(self, tmp_path: Path):
        (tmp_path / ".render-diff.yaml").write_text(
            yaml.safe_dump({"overlays_dir": "overlays", "engine": {"concurrency": 2}})
        )

        config = load_config(start_path=tmp_path)

        assert config.overlays_dir == "overlays"
        assert config.engine.concurrency == 2

    def test_load_empty_file(self, tmp_path: Path):
        path = tmp_path / ".render-diff.yaml"
        path.write_text("")

        assert load_config(config_path=path) == RenderDiffConfig.get_default()

    def test_load_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / ".render-diff.yaml"
        path.write_text("overlays_dir: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_path=path)

    def test_load_non_mapping(self, tmp_path: Path):
        path = tmp_path / ".render-diff.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_path=path)

    def test_save_and_load(self, tmp_path: Path):
        path = tmp_path / ".render-diff.yaml"
        config = RenderDiffConfig(base_branch="trunk")

        save_config(config, path)

        assert load_config(config_path=path) == config


class TestEnvironmentResolution:
    """Tests for environment name and alias resolution."""

    @pytest.fixture
    def config(self) -> RenderDiffConfig:
        return RenderDiffConfig(
            environments=[
                EnvironmentConfig(name="staging", aliases=["stg", "stage"]),
                EnvironmentConfig(name="production", aliases=["prd"]),
            ]
        )

    def test_resolve_by_name_and_alias(self, config: RenderDiffConfig):
        assert resolve_environment(config, "staging").name == "staging"
        assert resolve_environment(config, "PRD").name == "production"
        assert resolve_environment(config, "dev") is None

    def test_canonical_name(self, config: RenderDiffConfig):
        assert get_canonical_env_name(config, "stg") == "staging"
        assert get_canonical_env_name(config, "dev") == "dev"


class TestParseOutputModes:
    def test_single(self):
        assert parse_output_modes("local") == ["local"]

    def test_multiple_with_spaces_and_duplicates(self):
        assert parse_output_modes(" ci-summary , ci-comment,ci-summary,") == [
            "ci-summary",
            "ci-comment",
        ]

    def test_unknown_mode(self):
        with pytest.raises(ConfigError, match="invalid output mode 'slack'"):
            parse_output_modes("local,slack")

    def test_empty(self):
        with pytest.raises(ConfigError, match="at least one"):
            parse_output_modes(" , ")


class TestCISettings:
    def test_from_env(self):
        ci = CISettings.from_env(
            {
                "GITHUB_TOKEN": "t",
                "GITHUB_REPOSITORY": "org/repo",
                "PR_NUMBER": "42",
                "GITHUB_STEP_SUMMARY": "/tmp/summary.md",
                "DIFFTOOL": "meld",
            }
        )

        assert ci.can_comment is True
        assert ci.step_summary_path == "/tmp/summary.md"
        assert ci.difftool == "meld"

    def test_missing_values(self):
        ci = CISettings.from_env({"GITHUB_TOKEN": "", "PR_NUMBER": "1"})

        assert ci.github_token is None
        assert ci.can_comment is False
