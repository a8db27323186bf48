"""Repository snapshots that can build kustomizations."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from renderdiff.kustomize import build_kustomization


@runtime_checkable
class RepoBuilder(Protocol):
    """A repository snapshot at a fixed revision.

    Implementations must be safe to call concurrently from several worker
    threads.
    """

    def dir_exists(self, rel: str) -> bool: ...

    def build_kustomization(self, rel: str) -> bytes: ...


class RepoRef:
    """A checkout of the repository on disk (working tree or worktree)."""

    def __init__(self, root: Path):
        self.root: Path = Path(root)

    def path(self, rel: str) -> Path:
        return self.root / rel

    def dir_exists(self, rel: str) -> bool:
        return self.path(rel).is_dir()

    def file_exists(self, rel: str) -> bool:
        return self.path(rel).is_file()

    def read_text(self, rel: str) -> str | None:
        path: Path = self.path(rel)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def build_kustomization(self, rel: str) -> bytes:
        """Build the kustomization at rel. Raises KustomizeBuildError on failure."""
        return build_kustomization(self.path(rel))

    def __repr__(self) -> str:
        return f"RepoRef({self.root})"
