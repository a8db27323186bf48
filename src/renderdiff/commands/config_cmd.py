"""The config command group: create and inspect .render-diff.yaml."""

from __future__ import annotations

from pathlib import Path

import rich_click as click
import yaml

from renderdiff import console as con
from renderdiff import git
from renderdiff.config import (
    CONFIG_FILE_NAME,
    RenderDiffConfig,
    find_config_file,
    load_config,
    save_config,
)
from renderdiff.errors import RenderDiffError


def _describe_environments(cfg: RenderDiffConfig) -> str:
    if not cfg.environments:
        return "(auto-discover every overlay)"
    parts: list[str] = []
    for env in cfg.environments:
        label: str = env.name
        if env.overlay_dir != env.name:
            label += f" -> {env.overlay_dir}"
        if env.aliases:
            label += f" ({', '.join(env.aliases)})"
        parts.append(label)
    return ", ".join(parts)


@click.group()
def config() -> None:
    """Manage render-diff configuration."""
    pass


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
def config_init(force: bool) -> None:
    """Write a default .render-diff.yaml at the repository root."""
    try:
        config_path: Path = git.top_level() / CONFIG_FILE_NAME
    except RenderDiffError as e:
        con.print_error(str(e))
        raise SystemExit(1) from None

    if config_path.exists() and not force:
        con.print_error(f"Config file already exists: {config_path}")
        con.print_hint("Use --force to overwrite.")
        return

    save_config(RenderDiffConfig.get_default(), config_path)
    con.print_success(f"Created {config_path}")
    con.print_hint(
        "List environments and aliases under 'environments' to restrict the diff."
    )


@config.command("show")
@click.option(
    "--output-format",
    "-f",
    type=click.Choice(["text", "yaml"]),
    default="text",
    help="Output format.",
)
def config_show(output_format: str) -> None:
    """Show the effective configuration."""
    config_path: Path | None = find_config_file()
    try:
        cfg: RenderDiffConfig = load_config(config_path)
    except RenderDiffError as e:
        con.print_error(str(e))
        raise SystemExit(1) from None

    if output_format == "yaml":
        click.echo(
            yaml.safe_dump(cfg.to_dict(), default_flow_style=False, sort_keys=False)
        )
        return

    con.print_header("render-diff configuration")
    con.print_key_value(
        "Config file", str(config_path) if config_path else "(using defaults)"
    )
    con.print_key_value("Overlays dir", cfg.overlays_dir)
    con.print_key_value("Base branch", cfg.base_branch)
    con.print_key_value("Environments", _describe_environments(cfg))
    con.print_key_value(
        "Concurrency",
        str(cfg.engine.concurrency) if cfg.engine.concurrency else "one per component",
    )
    con.print_key_value("Output modes", ", ".join(cfg.output.modes))
    con.print_key_value("Colour", cfg.output.color)
