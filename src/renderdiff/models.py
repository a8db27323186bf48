"""Domain models for render-diff."""

from __future__ import annotations

from dataclasses import dataclass, field

from renderdiff.diff import compute_diff

Environment = str
"""An overlay/environment label such as 'staging' or 'production'."""


@dataclass(frozen=True, order=True)
class ComponentPath:
    """A deployable component directory produced by the detector."""

    path: str
    """Component directory relative to the repository root."""

    cluster_dir: str = ""
    """Cluster-specific sub-directory qualifier, empty when not cluster-specific."""

    def __repr__(self) -> str:
        if self.cluster_dir:
            return f"ComponentPath({self.path}, cluster={self.cluster_dir})"
        return f"ComponentPath({self.path})"


@dataclass
class ComponentDiff:
    """Render diff for a single (component, environment) pair."""

    path: str
    cluster_dir: str
    env: Environment
    base_yaml: bytes | None = None
    """Rendered YAML on the base ref. None for components added on HEAD."""
    head_yaml: bytes | None = None
    """Rendered YAML on HEAD. None for components removed on HEAD."""
    diff: str = ""
    """Unified diff text. Empty means no textual difference."""
    added: int = 0
    removed: int = 0
    error: str | None = None
    """Set when building this component failed on either ref."""

    @classmethod
    def from_component_path(cls, cp: ComponentPath, env: Environment) -> ComponentDiff:
        return cls(path=cp.path, cluster_dir=cp.cluster_dir, env=env)

    @property
    def has_diff(self) -> bool:
        return self.diff != ""

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.env, self.path, self.cluster_dir)

    def compute_diff(self) -> None:
        """Populate diff, added and removed from base_yaml and head_yaml.

        Raises DiffComputationError when the diff cannot be computed.
        """
        self.diff, self.added, self.removed = compute_diff(
            self.base_yaml, self.head_yaml, self.path
        )

    def __repr__(self) -> str:
        if self.error:
            return f"ComponentDiff({self.path} ({self.env}), error={self.error!r})"
        return f"ComponentDiff({self.path} ({self.env}), +{self.added} -{self.removed})"


@dataclass
class DiffResult:
    """Aggregate output of a render-diff run."""

    diffs: list[ComponentDiff] = field(default_factory=list)
    """Components with a non-empty diff or a build error, in arrival order."""
    total_added: int = 0
    total_removed: int = 0

    def add(self, cd: ComponentDiff) -> None:
        self.diffs.append(cd)
        if cd.error is None:
            self.total_added += cd.added
            self.total_removed += cd.removed

    @property
    def errors(self) -> list[ComponentDiff]:
        return [d for d in self.diffs if d.error is not None]

    @property
    def changed(self) -> list[ComponentDiff]:
        return [d for d in self.diffs if d.error is None and d.has_diff]

    def sorted_diffs(self) -> list[ComponentDiff]:
        """Return the diffs ordered by environment, then path."""
        return sorted(self.diffs, key=lambda d: d.key)

    def __len__(self) -> int:
        return len(self.diffs)
