"""The affected command: list components touched by the current changes."""

from __future__ import annotations

import json
from pathlib import Path

import rich_click as click

from renderdiff import console as con
from renderdiff.config import RenderDiffConfig, load_config
from renderdiff.errors import RenderDiffError
from renderdiff.logs import setup_logging
from renderdiff.pipeline import RunPlan, prepare_run


def _print_table(plan: RunPlan) -> None:
    table = con.create_table()
    table.add_column("Environment", style="env")
    table.add_column("Component", style="component")
    table.add_column("Cluster", style="muted")

    for env in sorted(plan.affected):
        for cp in plan.affected[env]:
            table.add_row(env, cp.path, cp.cluster_dir or "-")

    con.console.print(table)


def _as_json(plan: RunPlan) -> str:
    return json.dumps(
        {
            "base_ref": plan.base_ref,
            "head": plan.head_sha,
            "base": plan.base_sha,
            "changed_files": plan.changed_files,
            "affected": {
                env: [
                    {"path": cp.path, "cluster_dir": cp.cluster_dir}
                    for cp in plan.affected[env]
                ]
                for env in sorted(plan.affected)
            },
        },
        indent=2,
    )


@click.command("affected")
@click.option(
    "--repo-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Repository root (default: auto-detect via git).",
)
@click.option("--base-ref", "-b", help="Base git ref to compare against.")
@click.option("--overlays-dir", help="Overlays directory relative to the repo root.")
@click.option("--env", "-e", "env_filter", multiple=True, help="Filter environments.")
@click.option(
    "--output-format",
    "-f",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs on stderr.")
def affected(
    repo_root: Path | None,
    base_ref: str | None,
    overlays_dir: str | None,
    env_filter: tuple[str, ...],
    output_format: str,
    verbose: bool,
) -> None:
    """List component paths affected by changes since the base ref.

    Examples:
        render-diff affected
        render-diff affected --base-ref origin/main -f json
    """
    log_cleanup = setup_logging(None, verbose)
    try:
        cfg: RenderDiffConfig = load_config(start_path=repo_root)
        with prepare_run(
            cfg, repo_root, base_ref, overlays_dir, list(env_filter)
        ) as plan:
            if output_format == "json":
                click.echo(_as_json(plan))
                return

            if plan.total_jobs == 0:
                con.print_success("No affected components detected.")
                return

            con.print_header(
                f"{plan.total_jobs} affected component paths "
                f"from {len(plan.changed_files)} changed files"
            )
            _print_table(plan)
    except RenderDiffError as e:
        con.print_error(str(e))
        raise SystemExit(1) from None
    finally:
        log_cleanup()
