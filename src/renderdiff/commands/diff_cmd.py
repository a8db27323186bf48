"""The diff command: render affected components on both refs and diff them."""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Any

import rich_click as click
from loguru import logger

from renderdiff import console as con
from renderdiff.config import (
    COLOR_MODES,
    CISettings,
    RenderDiffConfig,
    load_config,
    parse_output_modes,
)
from renderdiff.engine import DiffStream, Engine
from renderdiff.errors import RenderDiffError, RunCancelledError
from renderdiff.logs import setup_logging
from renderdiff.models import DiffResult
from renderdiff.output import (
    open_in_difftool,
    post_ci_comment,
    write_ci_summary,
    write_diff_files,
)
from renderdiff.pipeline import RunPlan, prepare_run


def _install_interrupt(cancel: threading.Event) -> Any:
    """Set cancel on SIGINT/SIGTERM; return the previous handlers."""
    if threading.current_thread() is not threading.main_thread():
        return None

    def handler(signum: int, _frame: Any) -> None:
        logger.warning("Received signal {}, cancelling remaining builds", signum)
        cancel.set()

    previous = {
        sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    return previous


def _restore_interrupt(previous: Any) -> None:
    if previous:
        for sig, old in previous.items():
            signal.signal(sig, old)


def run_local(
    engine: Engine,
    plan: RunPlan,
    cfg: RenderDiffConfig,
    cancel: threading.Event,
    open_diff: bool,
    output_dir: Path | None,
) -> DiffResult:
    """Local mode. Streams diffs as they finish unless writing files or opening a tool."""
    if output_dir is not None:
        result: DiffResult = engine.run(plan.affected, cancel)
        write_diff_files(result, output_dir)
        con.print_summary(result)
        return result

    if open_diff:
        result = engine.run(plan.affected, cancel)
        open_in_difftool(result, CISettings.from_env().difftool)
        return result

    stream = DiffStream(maxsize=cfg.engine.stream_buffer)
    failures: list[Exception] = []

    def consume() -> None:
        # keep draining after a failure so the producer never blocks on a full stream
        for cd in stream:
            if failures:
                continue
            try:
                con.print_component_diff(cd)
            except Exception as e:
                logger.error("Writing diff for {} failed: {}", cd.path, e)
                failures.append(e)
                cancel.set()

    consumer = threading.Thread(target=consume, name="render-diff-output", daemon=True)
    consumer.start()
    try:
        result = engine.run_progressive(plan.affected, stream, cancel)
    except RunCancelledError:
        if not failures:
            raise
    finally:
        consumer.join()
    if failures:
        raise failures[0]
    con.print_summary(result)
    return result


def run_output_mode(
    mode: str,
    result: DiffResult,
    plan: RunPlan,
    cfg: RenderDiffConfig,
    open_diff: bool,
    output_dir: Path | None,
) -> None:
    """Run one output mode against a finished result."""
    ci: CISettings = CISettings.from_env()

    if mode == "local":
        if output_dir is not None:
            write_diff_files(result, output_dir)
        if open_diff:
            open_in_difftool(result, ci.difftool)
            return
        for cd in result.sorted_diffs():
            con.print_component_diff(cd)
        con.print_summary(result)
    elif mode == "ci-summary":
        write_ci_summary(result, ci.step_summary_path, cfg.output.truncate_bytes)
    elif mode == "ci-comment":
        post_ci_comment(result, plan.head_sha, plan.base_sha, ci, cfg.github)
    elif mode == "ci-artifact-dir":
        if output_dir is None:
            raise RenderDiffError("--output-dir is required for ci-artifact-dir mode")
        written = write_diff_files(result, output_dir)
        con.console.print(f"Wrote {len(written)} diff files to {output_dir}")


@click.command("diff")
@click.option(
    "--repo-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Repository root (default: auto-detect via git).",
)
@click.option(
    "--base-ref", "-b", help="Base git ref to compare against (default: merge-base)."
)
@click.option("--overlays-dir", help="Overlays directory relative to the repo root.")
@click.option(
    "--env",
    "-e",
    "env_filter",
    multiple=True,
    help="Only diff these environments (names or aliases). Repeatable.",
)
@click.option(
    "--color",
    type=click.Choice(COLOR_MODES),
    help="Colour output: auto, always, never.",
)
@click.option(
    "--open", "open_diff", is_flag=True, help="Open diffs in $DIFFTOOL or git difftool."
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Write per-component .diff files to this directory.",
)
@click.option(
    "--output-mode",
    "-o",
    help="Comma-separated: local, ci-summary, ci-comment, ci-artifact-dir.",
)
@click.option(
    "--concurrency",
    "-j",
    type=click.IntRange(min=0),
    help="Maximum parallel builds (0 = one worker per component).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write debug-level logs to this file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs on stderr.")
def diff(
    repo_root: Path | None,
    base_ref: str | None,
    overlays_dir: str | None,
    env_filter: tuple[str, ...],
    color: str | None,
    open_diff: bool,
    output_dir: Path | None,
    output_mode: str | None,
    concurrency: int | None,
    log_file: Path | None,
    verbose: bool,
) -> None:
    """Show the kustomize render diff for components affected by this branch.

    Builds every affected component on HEAD and on the base ref in parallel
    and prints the unified diff of the rendered manifests.

    Examples:
        render-diff diff
        render-diff diff --base-ref origin/main --env staging
        render-diff diff --output-mode ci-summary,ci-comment
        render-diff diff --output-dir ./diffs
    """
    log_cleanup = setup_logging(log_file, verbose)
    try:
        _diff(
            repo_root,
            base_ref,
            overlays_dir,
            list(env_filter),
            color,
            open_diff,
            output_dir,
            output_mode,
            concurrency,
        )
    finally:
        log_cleanup()


def _diff(
    repo_root: Path | None,
    base_ref: str | None,
    overlays_dir: str | None,
    env_filter: list[str],
    color: str | None,
    open_diff: bool,
    output_dir: Path | None,
    output_mode: str | None,
    concurrency: int | None,
) -> None:
    try:
        cfg: RenderDiffConfig = load_config(start_path=repo_root)
        modes: list[str] = (
            parse_output_modes(output_mode) if output_mode else list(cfg.output.modes)
        )
    except RenderDiffError as e:
        con.print_error(str(e))
        raise SystemExit(1) from None

    con.configure(color or cfg.output.color)
    if output_dir is None and cfg.output.output_dir:
        output_dir = Path(cfg.output.output_dir)

    cancel = threading.Event()
    previous_handlers = _install_interrupt(cancel)
    had_error = False

    try:
        with prepare_run(cfg, repo_root, base_ref, overlays_dir, env_filter) as plan:
            if not plan.changed_files:
                con.console.print("No changed files detected — nothing to diff.")
                return
            if plan.total_jobs == 0:
                con.console.print("No affected components detected — nothing to diff.")
                return

            workers: int = (
                concurrency if concurrency is not None else cfg.engine.concurrency
            )
            engine = Engine(
                plan.head,
                plan.base,
                concurrency=workers or plan.total_jobs,
                logger=logger.bind(component="engine"),
            )

            if modes == ["local"]:
                run_local(engine, plan, cfg, cancel, open_diff, output_dir)
                return

            with con.status(f"Building {plan.total_jobs} component paths..."):
                result: DiffResult = engine.run(plan.affected, cancel)
            for mode in modes:
                try:
                    run_output_mode(mode, result, plan, cfg, open_diff, output_dir)
                except (RenderDiffError, OSError) as e:
                    logger.error(
                        "Output mode {} failed, continuing with remaining modes: {}",
                        mode,
                        e,
                    )
                    had_error = True
    except RunCancelledError as e:
        con.print_error(f"Interrupted: {e}")
        raise SystemExit(130) from None
    except RenderDiffError as e:
        con.print_error(f"render-diff failed: {e}")
        raise SystemExit(1) from None
    except OSError as e:
        con.print_error(f"Writing output failed: {e}")
        raise SystemExit(1) from None
    finally:
        _restore_interrupt(previous_handlers)

    if had_error:
        raise SystemExit(1)
