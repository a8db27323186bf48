"""Plan a render-diff run: resolve refs, check out the base and detect components."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from renderdiff import git
from renderdiff.config import RenderDiffConfig, get_canonical_env_name
from renderdiff.detector import Detector, discover_environments
from renderdiff.errors import ConfigError
from renderdiff.models import ComponentPath, Environment
from renderdiff.repository import RepoRef


@dataclass
class RunPlan:
    """Everything the engine needs for one run."""

    repo_root: Path
    base_ref: str
    head_sha: str
    base_sha: str
    head: RepoRef
    base: RepoRef
    changed_files: list[str] = field(default_factory=list)
    affected: dict[Environment, list[ComponentPath]] = field(default_factory=dict)

    @property
    def total_jobs(self) -> int:
        return sum(len(paths) for paths in self.affected.values())


def select_environments(
    config: RenderDiffConfig,
    head: RepoRef,
    overlays_dir: str,
    env_filter: list[str] | None = None,
) -> dict[Environment, str] | None:
    """Map environment names to overlay directories.

    Returns None to let the detector auto-discover every overlay when neither
    the config nor the filter restricts environments.

    Raises:
        ConfigError: if a filter name matches no environment
    """
    if config.environments:
        known: dict[Environment, str] = {
            env.name: env.overlay_dir for env in config.environments
        }
    elif env_filter:
        known = {name: name for name in discover_environments(head, overlays_dir)}
    else:
        return None

    if not env_filter:
        return known

    selected: dict[Environment, str] = {}
    for name in env_filter:
        canonical: str = get_canonical_env_name(config, name)
        if canonical not in known:
            raise ConfigError(
                f"Unknown environment {name!r}; known: {', '.join(sorted(known))}"
            )
        selected[canonical] = known[canonical]
    return selected


@contextmanager
def prepare_run(
    config: RenderDiffConfig,
    repo_root: Path | None = None,
    base_ref: str | None = None,
    overlays_dir: str | None = None,
    env_filter: list[str] | None = None,
) -> Generator[RunPlan]:
    """Resolve refs, create the base worktree and detect affected components.

    The base worktree is removed when the context exits.

    Raises:
        GitError: if a ref cannot be resolved or the worktree cannot be created
        DetectorError: if the overlays cannot be evaluated
        ConfigError: if an environment filter is invalid
    """
    root: Path = (repo_root or git.top_level()).resolve()
    overlays: str = overlays_dir or config.overlays_dir

    effective_base: str = base_ref or git.merge_base(root, config.base_branch)
    base_sha: str = git.resolve_ref(root, effective_base)
    head_sha: str = git.resolve_ref(root, "HEAD")
    logger.info("Comparing refs head={} base={}", head_sha, base_sha)

    changed: list[str] = git.changed_files(root, effective_base)
    head = RepoRef(root)

    if not changed:
        yield RunPlan(
            repo_root=root,
            base_ref=effective_base,
            head_sha=head_sha,
            base_sha=base_sha,
            head=head,
            base=head,
        )
        return
    logger.info("Changed files detected: {}", len(changed))

    with git.worktree(root, effective_base) as worktree_path:
        base = RepoRef(worktree_path)

        logger.info("Detecting affected components...")
        environments = select_environments(config, head, overlays, env_filter)
        detector = Detector(head, base, overlays, environments)
        affected = detector.affected_components(changed)

        plan = RunPlan(
            repo_root=root,
            base_ref=effective_base,
            head_sha=head_sha,
            base_sha=base_sha,
            head=head,
            base=base,
            changed_files=changed,
            affected=affected,
        )
        logger.info("Affected component paths detected: {}", plan.total_jobs)
        yield plan
