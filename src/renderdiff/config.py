"""Configuration management for render-diff.

This module handles loading and managing configuration from a YAML file,
falling back to defaults that match the usual infra-deployments layout.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from renderdiff.errors import ConfigError

CONFIG_FILE_NAME = ".render-diff.yaml"

OUTPUT_MODES: tuple[str, ...] = ("local", "ci-summary", "ci-comment", "ci-artifact-dir")
COLOR_MODES: tuple[str, ...] = ("auto", "always", "never")


@dataclass
class EnvironmentConfig:
    """Configuration for a single environment."""

    name: str
    """Name of the environment (e.g., 'staging', 'production')."""

    overlay: str | None = None
    """Overlay directory name under overlays_dir. Defaults to the name."""

    aliases: list[str] = field(default_factory=list)
    """Aliases for this environment (e.g., ['stg'] for 'staging')."""

    @property
    def overlay_dir(self) -> str:
        return self.overlay or self.name


@dataclass
class EngineConfig:
    """Configuration for the render-diff engine."""

    concurrency: int = 0
    """Maximum parallel component builds. 0 sizes the pool to the job count."""

    stream_buffer: int = 10
    """Capacity of the progressive output buffer."""


@dataclass
class OutputConfig:
    """Configuration for result presentation."""

    modes: list[str] = field(default_factory=lambda: ["local"])
    """Output modes: local, ci-summary, ci-comment, ci-artifact-dir."""

    color: str = "auto"
    """Colour output: auto, always or never."""

    output_dir: str | None = None
    """Directory for per-component .diff files."""

    truncate_bytes: int = 50 * 1024
    """Diffs larger than this are truncated in the CI summary."""


@dataclass
class GitHubConfig:
    """Configuration for posting PR comments."""

    api_url: str = "https://api.github.com"
    """GitHub API base URL (override for GitHub Enterprise)."""

    comment_marker: str = "<!-- render-diff-comment -->"
    """Hidden marker identifying the render-diff comment on a PR."""

    timeout_seconds: float = 30.0


@dataclass
class RenderDiffConfig:
    """Main configuration for render-diff."""

    overlays_dir: str = "argo-cd-apps/overlays"
    """Path to the overlays directory (relative to repo root)."""

    base_branch: str = "main"
    """Branch used to compute the merge-base when no base ref is given."""

    environments: list[EnvironmentConfig] = field(default_factory=list)
    """Environments to evaluate. Empty means every overlay directory."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)

    @classmethod
    def get_default(cls) -> RenderDiffConfig:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenderDiffConfig:
        """Create config from a dictionary."""
        environments = []
        for env_data in data.get("environments", []) or []:
            if "name" not in env_data:
                raise ConfigError("Every environment needs a 'name'")
            environments.append(
                EnvironmentConfig(
                    name=env_data["name"],
                    overlay=env_data.get("overlay"),
                    aliases=env_data.get("aliases", []),
                )
            )

        engine_data = data.get("engine", {}) or {}
        engine = EngineConfig(
            concurrency=int(engine_data.get("concurrency", 0)),
            stream_buffer=int(engine_data.get("stream_buffer", 10)),
        )

        output_data = data.get("output", {}) or {}
        modes = output_data.get("modes", ["local"])
        if isinstance(modes, str):
            modes = parse_output_modes(modes)
        output = OutputConfig(
            modes=list(modes),
            color=output_data.get("color", "auto"),
            output_dir=output_data.get("output_dir"),
            truncate_bytes=int(output_data.get("truncate_bytes", 50 * 1024)),
        )

        github_data = data.get("github", {}) or {}
        github = GitHubConfig(
            api_url=github_data.get("api_url", "https://api.github.com"),
            comment_marker=github_data.get(
                "comment_marker", "<!-- render-diff-comment -->"
            ),
            timeout_seconds=float(github_data.get("timeout_seconds", 30.0)),
        )

        config = cls(
            overlays_dir=data.get("overlays_dir", "argo-cd-apps/overlays"),
            base_branch=data.get("base_branch", "main"),
            environments=environments,
            engine=engine,
            output=output,
            github=github,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ConfigError for values the tool cannot work with."""
        if self.engine.concurrency < 0:
            raise ConfigError("engine.concurrency must be >= 0")
        if self.engine.stream_buffer < 1:
            raise ConfigError("engine.stream_buffer must be >= 1")
        if self.output.color not in COLOR_MODES:
            raise ConfigError(
                f"output.color must be one of {', '.join(COLOR_MODES)}, "
                f"got {self.output.color!r}"
            )
        for mode in self.output.modes:
            if mode not in OUTPUT_MODES:
                raise ConfigError(f"Unknown output mode {mode!r}")

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        output_dict: dict[str, Any] = {
            "modes": list(self.output.modes),
            "color": self.output.color,
            "truncate_bytes": self.output.truncate_bytes,
        }
        if self.output.output_dir:
            output_dict["output_dir"] = self.output.output_dir

        return {
            "overlays_dir": self.overlays_dir,
            "base_branch": self.base_branch,
            "environments": [
                {
                    k: v
                    for k, v in {
                        "name": env.name,
                        "overlay": env.overlay,
                        "aliases": env.aliases,
                    }.items()
                    if v is not None
                }
                for env in self.environments
            ],
            "engine": {
                "concurrency": self.engine.concurrency,
                "stream_buffer": self.engine.stream_buffer,
            },
            "output": output_dict,
            "github": {
                "api_url": self.github.api_url,
                "comment_marker": self.github.comment_marker,
                "timeout_seconds": self.github.timeout_seconds,
            },
        }


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find the config file by walking up the directory tree.

    Starts from start_path (or cwd) and walks up looking for .render-diff.yaml.
    """
    if start_path is None:
        start_path = Path.cwd()

    current: Path = start_path.resolve()
    while True:
        config_path: Path = current / CONFIG_FILE_NAME
        if config_path.exists():
            return config_path
        if current == current.parent:
            return None
        current = current.parent


def load_config(
    config_path: Path | None = None, start_path: Path | None = None
) -> RenderDiffConfig:
    """Load configuration from file or return defaults.

    If config_path is None, searches for .render-diff.yaml upwards from
    start_path. If no config file is found, returns default configuration.

    Raises:
        ConfigError: if the file is not valid YAML or holds invalid values
    """
    if config_path is None:
        config_path = find_config_file(start_path)

    if config_path is None or not config_path.exists():
        return RenderDiffConfig.get_default()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    return RenderDiffConfig.from_dict(data)


def save_config(config: RenderDiffConfig, config_path: Path) -> None:
    """Save configuration to a file."""
    with config_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


def resolve_environment(
    config: RenderDiffConfig, env_name: str
) -> EnvironmentConfig | None:
    """Resolve an environment name or alias to its configuration.

    Matches against both the environment name and any configured aliases.
    Returns None if no match is found.
    """
    env_name_lower: str = env_name.lower()

    for env in config.environments:
        if env.name.lower() == env_name_lower:
            return env

        for alias in env.aliases:
            if alias.lower() == env_name_lower:
                return env

    return None


def get_canonical_env_name(config: RenderDiffConfig, env_name: str) -> str:
    """Get the canonical environment name for an alias.

    If the name is an alias, returns the main environment name.
    Otherwise returns the input name unchanged.
    """
    env: EnvironmentConfig | None = resolve_environment(config, env_name)
    if env:
        return env.name
    return env_name


def parse_output_modes(raw: str) -> list[str]:
    """Parse a comma-separated list of output modes.

    Blank entries are skipped and duplicates removed, keeping first-seen order.

    Raises:
        ConfigError: if any entry is not a known mode or no mode is given
    """
    modes: list[str] = []
    for part in raw.split(","):
        mode: str = part.strip()
        if not mode:
            continue
        if mode not in OUTPUT_MODES:
            raise ConfigError(
                f"invalid output mode {mode!r}: must be one or more of "
                f"{', '.join(OUTPUT_MODES)} (comma-separated)"
            )
        if mode not in modes:
            modes.append(mode)

    if not modes:
        raise ConfigError("at least one output mode is required")
    return modes


@dataclass
class CISettings:
    """CI settings read from the process environment."""

    github_token: str | None = None
    github_repository: str | None = None
    pr_number: str | None = None
    step_summary_path: str | None = None
    difftool: str | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> CISettings:
        env = os.environ if environ is None else environ
        return cls(
            github_token=env.get("GITHUB_TOKEN") or None,
            github_repository=env.get("GITHUB_REPOSITORY") or None,
            pr_number=env.get("PR_NUMBER") or None,
            step_summary_path=env.get("GITHUB_STEP_SUMMARY") or None,
            difftool=env.get("DIFFTOOL") or None,
        )

    @property
    def can_comment(self) -> bool:
        return bool(self.github_token and self.github_repository and self.pr_number)
