"""Detection of component paths affected by a set of changed files."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import yaml
from loguru import logger

from renderdiff.argocd import ArgoAppSetConfig, extract_applicationsets
from renderdiff.errors import DetectorError
from renderdiff.kustomize import find_kustomization_file, local_dependencies, normalize
from renderdiff.models import ComponentPath, Environment

if TYPE_CHECKING:
    from pathlib import Path

    from renderdiff.repository import RepoRef


@dataclass
class _Dependencies:
    dirs: set[str] = field(default_factory=set)
    files: set[str] = field(default_factory=set)

    def touched_by(self, changed_file: str) -> bool:
        if changed_file in self.files:
            return True
        return any(
            d == "" or changed_file == d or changed_file.startswith(d + "/")
            for d in self.dirs
        )


def discover_environments(ref: RepoRef, overlays_dir: str) -> list[str]:
    """List overlay sub-directories that contain a kustomization."""
    root: Path = ref.path(overlays_dir)
    if not root.is_dir():
        return []
    return sorted(
        child.name
        for child in root.iterdir()
        if child.is_dir() and find_kustomization_file(child) is not None
    )


class Detector:
    """Maps changed files to affected component paths per environment.

    Each environment overlay is built on both refs and its ApplicationSets
    are expanded into component paths. A component is affected when it is
    generated on only one of the refs, or when a changed file lies inside the
    local dependency closure of its kustomization on either ref.
    """

    def __init__(
        self,
        head: RepoRef,
        base: RepoRef,
        overlays_dir: str,
        environments: dict[Environment, str] | None = None,
    ):
        """
        Args:
            head: Snapshot of the working tree
            base: Snapshot of the base revision
            overlays_dir: Overlays directory relative to the repository root
            environments: Mapping of environment name to overlay directory name.
                Auto-discovered from both refs when None.
        """
        self.head: RepoRef = head
        self.base: RepoRef = base
        self.overlays_dir: str = normalize(overlays_dir)

        if environments is None:
            names: set[str] = set(discover_environments(head, self.overlays_dir))
            names.update(discover_environments(base, self.overlays_dir))
            environments = {name: name for name in sorted(names)}

        if not environments:
            raise DetectorError(f"No environment overlays found in {overlays_dir}")
        self.environments: dict[Environment, str] = environments
        self._deps_cache: dict[str, _Dependencies] = {}

    def affected_components(
        self, changed_files: Iterable[str]
    ) -> dict[Environment, list[ComponentPath]]:
        """Return the affected component paths for every environment.

        Environments without affected components are omitted. Each list is
        sorted and free of duplicates.

        Raises:
            DetectorError: if an overlay cannot be built or parsed
        """
        changed: list[str] = sorted({normalize(f) for f in changed_files if f})
        affected: dict[Environment, list[ComponentPath]] = {}

        for env, overlay in self.environments.items():
            overlay_rel: str = f"{self.overlays_dir}/{overlay}".strip("/")
            head_paths: set[ComponentPath] = self._components(self.head, overlay_rel)
            base_paths: set[ComponentPath] = self._components(self.base, overlay_rel)

            env_affected: set[ComponentPath] = head_paths ^ base_paths
            for cp in head_paths | base_paths:
                if cp in env_affected:
                    continue
                if self._is_touched(cp, changed):
                    env_affected.add(cp)

            if env_affected:
                affected[env] = sorted(env_affected)
                logger.debug(
                    "{} affected component paths in {}", len(env_affected), env
                )

        return affected

    def _components(self, ref: RepoRef, overlay_rel: str) -> set[ComponentPath]:
        if not ref.dir_exists(overlay_rel):
            return set()

        try:
            rendered: bytes = ref.build_kustomization(overlay_rel)
        except Exception as e:
            raise DetectorError(f"building overlay {overlay_rel} on {ref}: {e}") from e

        try:
            appsets: list[ArgoAppSetConfig] = extract_applicationsets(rendered)
        except yaml.YAMLError as e:
            raise DetectorError(f"parsing overlay {overlay_rel} on {ref}: {e}") from e

        paths: set[ComponentPath] = set()
        for appset in appsets:
            paths.update(appset.component_paths())
        return paths

    def _is_touched(self, cp: ComponentPath, changed: list[str]) -> bool:
        deps: _Dependencies | None = self._deps_cache.get(cp.path)
        if deps is None:
            deps = _Dependencies()
            for ref in (self.head, self.base):
                dirs, files = local_dependencies(ref.root, cp.path)
                deps.dirs.update(dirs)
                deps.files.update(files)
            self._deps_cache[cp.path] = deps

        return any(deps.touched_by(f) for f in changed)
