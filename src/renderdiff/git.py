"""Git plumbing: ref resolution, changed files and worktrees."""

from __future__ import annotations

import shutil
import subprocess
import tempfile
import threading
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from subprocess import CompletedProcess

from loguru import logger

from renderdiff.errors import GitError


def _git(args: list[str], cwd: Path | None = None) -> str:
    cmd: list[str] = ["git", *args]
    try:
        result: CompletedProcess[str] = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise GitError(cmd, message="git executable not found") from e
    except subprocess.CalledProcessError as e:
        raise GitError(cmd, e.stderr or "") from e
    return result.stdout


def top_level(cwd: Path | None = None) -> Path:
    """Return the root of the repository containing cwd."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd).strip())


def merge_base(repo_root: Path, branch: str) -> str:
    """Return the merge-base commit between HEAD and branch."""
    return _git(["merge-base", "HEAD", branch], cwd=repo_root).strip()


def resolve_ref(repo_root: Path, ref: str) -> str:
    """Resolve a ref to its full commit id."""
    return _git(["rev-parse", "--verify", f"{ref}^{{commit}}"], cwd=repo_root).strip()


def _lines(output: str) -> list[str]:
    return [f.strip() for f in output.split("\n") if f.strip()]


def changed_files(repo_root: Path, base_ref: str) -> list[str]:
    """List files that differ between base_ref and the working tree.

    Includes committed and uncommitted changes to tracked files plus
    untracked files that are not ignored.
    """
    tracked: list[str] = _lines(
        _git(["diff", "--name-only", "--no-renames", base_ref], cwd=repo_root)
    )
    untracked: list[str] = _lines(
        _git(["ls-files", "--others", "--exclude-standard"], cwd=repo_root)
    )
    return sorted(set(tracked) | set(untracked))


def create_worktree(repo_root: Path, ref: str) -> tuple[Path, Callable[[], None]]:
    """Check out ref into a detached temporary worktree.

    Returns the worktree path and a cleanup callable. The cleanup removes the
    worktree and its directory; calling it more than once is a no-op.
    """
    parent: Path = Path(tempfile.mkdtemp(prefix="render-diff-base-"))
    worktree_path: Path = parent / "worktree"

    try:
        _git(
            ["worktree", "add", "--detach", str(worktree_path), ref],
            cwd=repo_root,
        )
    except GitError:
        shutil.rmtree(parent, ignore_errors=True)
        raise

    lock = threading.Lock()
    done: list[bool] = [False]

    def cleanup() -> None:
        with lock:
            if done[0]:
                return
            done[0] = True
        try:
            _git(["worktree", "remove", "--force", str(worktree_path)], cwd=repo_root)
        except GitError as e:
            logger.warning("Failed to remove worktree {}: {}", worktree_path, e)
            shutil.rmtree(parent, ignore_errors=True)
            try:
                _git(["worktree", "prune"], cwd=repo_root)
            except GitError as prune_error:
                logger.warning("Failed to prune worktrees: {}", prune_error)
            return
        shutil.rmtree(parent, ignore_errors=True)

    logger.debug("Created worktree for {} at {}", ref, worktree_path)
    return worktree_path, cleanup


@contextmanager
def worktree(repo_root: Path, ref: str) -> Generator[Path]:
    """Context manager around create_worktree that always cleans up."""
    path, cleanup = create_worktree(repo_root, ref)
    try:
        yield path
    finally:
        cleanup()
