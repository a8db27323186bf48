"""Kustomize operations for building and inspecting kustomizations."""

from __future__ import annotations

import posixpath
import subprocess
from subprocess import CompletedProcess
from typing import TYPE_CHECKING, Any, TypedDict

if TYPE_CHECKING:
    from pathlib import Path

import yaml

from renderdiff.errors import KustomizeBuildError

KUSTOMIZATION_FILES: tuple[str, ...] = (
    "kustomization.yaml",
    "kustomization.yml",
    "Kustomization",
)


class KustomizePatch(TypedDict, total=False):
    path: str
    patch: str
    target: dict[str, Any]


class KustomizeGenerator(TypedDict, total=False):
    name: str
    files: list[str]
    envs: list[str]
    env: str


class Kustomization(TypedDict, total=False):
    """The subset of a kustomization file that references local paths."""

    apiVersion: str
    kind: str
    resources: list[str]
    bases: list[str]
    components: list[str]
    crds: list[str]
    configurations: list[str]
    generators: list[str]
    transformers: list[str]
    validators: list[str]
    patches: list[KustomizePatch]
    patchesStrategicMerge: list[str]
    patchesJson6902: list[KustomizePatch]
    configMapGenerator: list[KustomizeGenerator]
    secretGenerator: list[KustomizeGenerator]


_PATH_LIST_FIELDS: tuple[str, ...] = (
    "resources",
    "bases",
    "components",
    "crds",
    "configurations",
    "generators",
    "transformers",
    "validators",
    "patchesStrategicMerge",
)


def build_kustomization(kustomize_path: Path) -> bytes:
    """Render a kustomization directory to YAML.

    Uses 'kubectl kustomize' and falls back to 'kustomize build' when kubectl
    is not installed.

    Raises:
        KustomizeBuildError: if the directory has no kustomization, no build
            tool is installed, or the build fails
    """
    if find_kustomization_file(kustomize_path) is None:
        raise KustomizeBuildError(f"No kustomization file found in {kustomize_path}")

    cmd: list[str] = ["kubectl", "kustomize", str(kustomize_path)]

    try:
        result: CompletedProcess[bytes] = subprocess.run(
            cmd, capture_output=True, check=True
        )
        return result.stdout
    except FileNotFoundError:
        pass
    except subprocess.CalledProcessError as e:
        raise KustomizeBuildError(
            f"Kustomize render failed: {_stderr(e)}"
        ) from e

    cmd = ["kustomize", "build", str(kustomize_path)]
    try:
        result = subprocess.run(cmd, capture_output=True, check=True)
    except FileNotFoundError as e:
        raise KustomizeBuildError(
            "Neither 'kubectl kustomize' nor 'kustomize' command found. "
            "Please install kubectl or kustomize CLI."
        ) from e
    except subprocess.CalledProcessError as e:
        raise KustomizeBuildError(f"Kustomize build failed: {_stderr(e)}") from e
    return result.stdout


def _stderr(e: subprocess.CalledProcessError) -> str:
    stderr: bytes | str | None = e.stderr
    if isinstance(stderr, bytes):
        return stderr.decode("utf-8", errors="replace").strip()
    return (stderr or "").strip()


def find_kustomization_file(directory: Path) -> Path | None:
    for name in KUSTOMIZATION_FILES:
        candidate: Path = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_kustomization(directory: Path) -> Kustomization | None:
    """Load the kustomization file in a directory.

    Returns None when the directory has no kustomization file or it is not a
    YAML mapping.
    """
    kustomization_file: Path | None = find_kustomization_file(directory)
    if kustomization_file is None:
        return None

    try:
        with kustomization_file.open(encoding="utf-8") as f:
            doc: Any = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return None

    if not isinstance(doc, dict):
        return None
    return doc


def is_remote_reference(ref: str) -> bool:
    """Whether a kustomization entry points outside the repository."""
    return (
        "://" in ref
        or ref.startswith(("github.com/", "git@", "ssh:"))
        or "?ref=" in ref
    )


def _referenced_paths(kustomization: Kustomization) -> list[str]:
    refs: list[str] = []

    for key in _PATH_LIST_FIELDS:
        for entry in kustomization.get(key) or []:
            if isinstance(entry, str):
                refs.append(entry)

    for key in ("patches", "patchesJson6902"):
        for patch in kustomization.get(key) or []:
            if isinstance(patch, dict) and isinstance(patch.get("path"), str):
                refs.append(patch["path"])
            elif isinstance(patch, str):
                refs.append(patch)

    for key in ("configMapGenerator", "secretGenerator"):
        for gen in kustomization.get(key) or []:
            if not isinstance(gen, dict):
                continue
            for file_entry in gen.get("files") or []:
                # files entries may be "key=path"
                refs.append(str(file_entry).split("=", 1)[-1])
            refs.extend(str(e) for e in gen.get("envs") or [])
            if gen.get("env"):
                refs.append(str(gen["env"]))

    return refs


def local_dependencies(repo_root: Path, rel_dir: str) -> tuple[set[str], set[str]]:
    """Compute the local files and directories a kustomization depends on.

    Follows local directory references transitively. Remote references and
    paths escaping the repository are ignored.

    Args:
        repo_root: Root of the repository snapshot
        rel_dir: Kustomization directory relative to repo_root

    Returns:
        Tuple of (directories, files), all relative to repo_root. Every file
        under one of the directories is a dependency.
    """
    dirs: set[str] = set()
    files: set[str] = set()
    pending: list[str] = [normalize(rel_dir)]

    while pending:
        current: str = pending.pop()
        if current in dirs:
            continue

        abs_dir: Path = repo_root / current
        if not abs_dir.is_dir():
            continue
        dirs.add(current)

        kustomization: Kustomization | None = load_kustomization(abs_dir)
        if kustomization is None:
            continue

        for ref in _referenced_paths(kustomization):
            if not ref or is_remote_reference(ref):
                continue
            target: str = normalize(posixpath.join(current, ref))
            if target.startswith(".."):
                continue
            if (repo_root / target).is_dir():
                pending.append(target)
            else:
                files.add(target)

    return dirs, files


def normalize(rel_path: str) -> str:
    """Normalize a repository-relative path to a canonical posix form."""
    normalized: str = posixpath.normpath(rel_path.replace("\\", "/"))
    if normalized == ".":
        return ""
    return normalized.lstrip("/")
