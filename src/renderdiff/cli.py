"""render-diff CLI.

Shows the kustomize render delta of a GitOps branch before it is merged.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

import rich_click as click

from renderdiff.commands import affected, config, diff

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = False
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = (
    "Try running the '--help' flag for more information."
)
click.rich_click.STYLE_OPTION = "cyan"
click.rich_click.STYLE_ARGUMENT = "green"
click.rich_click.STYLE_COMMAND = "bold yellow"
click.rich_click.STYLE_SWITCH = "cyan"
click.rich_click.HEADER_TEXT = "render-diff - kustomize render delta for GitOps changes"
click.rich_click.STYLE_HEADER_TEXT = "bold magenta"
click.rich_click.ALIGN_COMMANDS_PANEL = "left"
click.rich_click.ALIGN_OPTIONS_PANEL = "left"
click.rich_click.MAX_WIDTH = 100

CLI_HELP = """Compute the rendered manifest diff of a branch, per environment.

\b
[bold cyan]Quick Start:[/bold cyan]
  [bold yellow]render-diff diff[/bold yellow]                         Diff against the merge-base with main
  [bold yellow]render-diff diff -b origin/main[/bold yellow]          Diff against an explicit base ref
  [bold yellow]render-diff diff --output-dir ./diffs[/bold yellow]    Write .diff files per component
  [bold yellow]render-diff affected[/bold yellow]                     List affected components only
"""


def _version() -> str:
    try:
        return version("render-diff")
    except PackageNotFoundError:
        return "dev"


@click.group(help=CLI_HELP)
@click.version_option(_version(), prog_name="render-diff")
def cli() -> None:
    """render-diff CLI entry point."""
    pass


cli.add_command(affected)
cli.add_command(config)
cli.add_command(diff)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
