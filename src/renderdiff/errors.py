"""Exception types raised by render-diff."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from renderdiff.models import DiffResult


class RenderDiffError(Exception):
    """Base class for all render-diff errors."""


class ConfigError(RenderDiffError):
    """Invalid configuration or command line values."""


class GitError(RenderDiffError):
    """A git command failed."""

    def __init__(self, cmd: list[str], stderr: str = "", message: str | None = None):
        self.cmd: list[str] = cmd
        self.stderr: str = stderr.strip()
        if message is None:
            message = f"git command failed: {' '.join(cmd)}"
            if self.stderr:
                message = f"{message}: {self.stderr}"
        super().__init__(message)


class KustomizeBuildError(RenderDiffError):
    """The kustomize build tool failed or could not be found."""


class ComponentBuildError(RenderDiffError):
    """Building a single component failed on one of the refs.

    Recoverable: the engine records it on the component and keeps going.
    """


class ComponentMissingError(ComponentBuildError):
    """The component directory exists on neither ref."""


class DiffComputationError(RenderDiffError):
    """Computing a diff failed. Aborts the whole run."""


class DetectorError(RenderDiffError):
    """The affected-component detector could not evaluate an overlay."""


class GitHubError(RenderDiffError):
    """Talking to the GitHub API failed."""


class RunCancelledError(RenderDiffError):
    """The engine run was cancelled before all jobs were processed.

    ``partial`` holds the components completed before cancellation; every
    entry in it is valid.
    """

    def __init__(self, partial: DiffResult):
        self.partial: DiffResult = partial
        super().__init__(
            f"render-diff cancelled after {len(partial.diffs)} completed components"
        )
