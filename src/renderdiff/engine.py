"""Concurrent render-diff engine.

Builds every affected (component, environment) pair on HEAD and on the base
ref with a bounded thread pool, diffs the results and aggregates them into a
DiffResult. Build failures are recorded on the component and never abort the
run; a failure to compute a diff is fatal and cancels the remaining jobs.
"""

from __future__ import annotations

import os
import queue
import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger as default_logger

from renderdiff.errors import (
    ComponentBuildError,
    ComponentMissingError,
    DiffComputationError,
    RenderDiffError,
    RunCancelledError,
)
from renderdiff.models import ComponentDiff, ComponentPath, DiffResult, Environment

if TYPE_CHECKING:
    from renderdiff.repository import RepoBuilder

DEFAULT_STREAM_BUFFER = 10

AffectedComponents = Mapping[Environment, Sequence[ComponentPath]]


class StreamClosedError(RenderDiffError):
    """A value was sent on, or close() called on, an already closed stream."""


_CLOSED = object()


class DiffStream:
    """Bounded single-consumer stream of ComponentDiff values.

    The producer closes the stream once; iterating ends after the last value
    sent before close(). put() blocks while the buffer is full.
    """

    def __init__(self, maxsize: int = DEFAULT_STREAM_BUFFER):
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, cd: ComponentDiff) -> None:
        if self._closed:
            raise StreamClosedError("send on closed stream")
        self._queue.put(cd)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                raise StreamClosedError("stream already closed")
            self._closed = True
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[ComponentDiff]:
        while True:
            item: Any = self._queue.get()
            if item is _CLOSED:
                return
            yield item


@dataclass(frozen=True)
class _Job:
    cp: ComponentPath
    env: Environment


def _collect_jobs(affected: AffectedComponents) -> list[_Job]:
    return [_Job(cp=cp, env=env) for env, paths in affected.items() for cp in paths]


class Engine:
    """Computes kustomize render diffs for affected component paths."""

    def __init__(
        self,
        head: RepoBuilder,
        base: RepoBuilder,
        concurrency: int = 0,
        logger: Any = None,
    ):
        if concurrency <= 0:
            concurrency = os.cpu_count() or 1
        self.head: RepoBuilder = head
        self.base: RepoBuilder = base
        self.concurrency: int = concurrency
        self.log = logger if logger is not None else default_logger.bind(
            component="engine"
        )

    def run(
        self,
        affected: AffectedComponents,
        cancel: threading.Event | None = None,
    ) -> DiffResult:
        """Build and diff every affected component.

        Returns a DiffResult holding every component with a non-empty diff or
        a build error. Arrival order is not deterministic.

        Raises:
            DiffComputationError: if computing any diff fails
            RunCancelledError: if cancel is set before all jobs have run
        """
        return self._execute(_collect_jobs(affected), cancel, emit=None)

    def run_progressive(
        self,
        affected: AffectedComponents,
        out: DiffStream,
        cancel: threading.Event | None = None,
    ) -> DiffResult:
        """Like run(), but also sends each finished component on out.

        out is closed when all jobs have completed, whether or not the run
        raises. A separate consumer must drain it.
        """
        try:
            return self._execute(_collect_jobs(affected), cancel, emit=out.put)
        finally:
            out.close()

    def _execute(
        self,
        jobs: list[_Job],
        cancel: threading.Event | None,
        emit: Callable[[ComponentDiff], None] | None,
    ) -> DiffResult:
        result = DiffResult()
        if not jobs:
            return result

        lock = threading.Lock()
        abort = threading.Event()
        skipped: list[_Job] = []

        def work(job: _Job) -> None:
            if abort.is_set() or (cancel is not None and cancel.is_set()):
                with lock:
                    skipped.append(job)
                return

            cd: ComponentDiff | None = self._process(job)
            if cd is None:
                return

            if emit is not None:
                emit(cd)
            with lock:
                result.add(cd)

        first_error: BaseException | None = None
        self.log.debug(
            "Dispatching {} jobs with concurrency {}", len(jobs), self.concurrency
        )

        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="render-diff"
        ) as executor:
            futures: list[Future[None]] = [executor.submit(work, job) for job in jobs]

            for future in as_completed(futures):
                if future.cancelled():
                    continue
                exc: BaseException | None = future.exception()
                if exc is None or first_error is not None:
                    continue
                first_error = exc
                abort.set()
                for pending in futures:
                    pending.cancel()

        if first_error is not None:
            raise first_error

        if skipped:
            self.log.warning(
                "Run cancelled: {} of {} jobs not started, {} components collected",
                len(skipped),
                len(jobs),
                len(result.diffs),
            )
            raise RunCancelledError(result)

        return result

    def _process(self, job: _Job) -> ComponentDiff | None:
        cd: ComponentDiff = ComponentDiff.from_component_path(job.cp, job.env)

        try:
            self.build_pair(cd)
        except ComponentBuildError as e:
            self.log.warning(
                "Build failed for {} ({}): {}", job.cp.path, job.env, e
            )
            cd.error = str(e)
            return cd

        try:
            cd.compute_diff()
        except DiffComputationError as e:
            raise DiffComputationError(
                f"computing diff for {job.cp.path} ({job.env}): {e}"
            ) from e

        if not cd.has_diff:
            self.log.debug("No render difference for {} ({})", job.cp.path, job.env)
            return None
        return cd

    def build_pair(self, cd: ComponentDiff) -> None:
        """Build cd on HEAD and on base, filling head_yaml and base_yaml.

        A side where the directory does not exist is left as None.

        Raises:
            ComponentBuildError: if building fails on either ref
            ComponentMissingError: if the directory exists on neither ref
        """
        if self.head.dir_exists(cd.path):
            try:
                cd.head_yaml = self.head.build_kustomization(cd.path)
            except Exception as e:
                raise ComponentBuildError(f"building {cd.path} on HEAD: {e}") from e

        if self.base.dir_exists(cd.path):
            try:
                cd.base_yaml = self.base.build_kustomization(cd.path)
            except Exception as e:
                raise ComponentBuildError(f"building {cd.path} on base: {e}") from e

        if cd.head_yaml is None and cd.base_yaml is None:
            raise ComponentMissingError(
                f"component {cd.path} does not exist on either ref"
            )
