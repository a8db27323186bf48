"""Rich console output utilities for the render-diff CLI.

Provides consistent CLI output using the Rich library. Diff text is always
printed as plain Text so YAML content is never interpreted as markup.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable

    from renderdiff.models import ComponentDiff, DiffResult

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

RENDER_DIFF_THEME = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "heading": "bold magenta",
        "muted": "dim",
        "env": "yellow",
        "path": "dim cyan",
        "component": "bold cyan",
        "diff.header": "bold",
        "diff.hunk": "cyan",
        "diff.add": "green",
        "diff.remove": "red",
    }
)


def _make_console(color: str = "auto", stderr: bool = False) -> Console:
    if color == "always":
        return Console(
            theme=RENDER_DIFF_THEME, stderr=stderr, force_terminal=True, highlight=False
        )
    if color == "never":
        return Console(
            theme=RENDER_DIFF_THEME,
            stderr=stderr,
            no_color=True,
            force_terminal=False,
            highlight=False,
        )
    return Console(theme=RENDER_DIFF_THEME, stderr=stderr, highlight=False)


console = _make_console()
err_console = _make_console(stderr=True)


def configure(color: str) -> None:
    """Recreate the consoles for the given colour mode (auto, always, never)."""
    global console, err_console
    console = _make_console(color)
    err_console = _make_console(color, stderr=True)


def print_success(message: str, prefix: str = "✓") -> None:
    """Print a success message."""
    console.print(f"[success]{prefix}[/success] {message}")


def print_error(message: str, prefix: str = "✗") -> None:
    """Print an error message to stderr."""
    err_console.print(f"[error]{prefix}[/error] {message}")


def print_header(title: str) -> None:
    """Print a section header."""
    console.print(f"\n[heading]{title}[/heading]")
    console.print(f"[muted]{'─' * len(title)}[/muted]")


def print_key_value(key: str, value: str, indent: int = 0) -> None:
    spaces: str = "  " * indent
    console.print(f"{spaces}[muted]{key}:[/muted] {value}")


def print_hint(message: str) -> None:
    """Print a hint for the user."""
    err_console.print(f"  [muted]💡 Hint:[/muted] [dim]{message}[/dim]")


def create_table(title: str | None = None, show_header: bool = True) -> Table:
    """Create a styled table."""
    return Table(
        title=title,
        show_header=show_header,
        header_style="bold",
        border_style="muted",
        title_style="heading",
    )


def diff_line_style(line: str) -> str | None:
    """Return the theme style for a unified diff line."""
    if line.startswith(("+++", "---")):
        return "diff.header"
    if line.startswith("@@"):
        return "diff.hunk"
    if line.startswith("+"):
        return "diff.add"
    if line.startswith("-"):
        return "diff.remove"
    return None


def print_diff(diff_lines: Iterable[str]) -> None:
    """Print diff output with appropriate coloring."""
    for line in diff_lines:
        text = Text(line.rstrip("\n"), style=diff_line_style(line) or "")
        console.print(text, soft_wrap=True)


def component_header(cd: ComponentDiff) -> str:
    if cd.error is not None:
        return f"=== {cd.path} ({cd.env}) === BUILD ERROR"
    return f"=== {cd.path} ({cd.env}) === +{cd.added} -{cd.removed}"


def print_component_diff(cd: ComponentDiff) -> None:
    """Print a single component's diff, or its build error."""
    header: str = component_header(cd)
    if cd.error is not None:
        console.print(Text(header, style="error"), soft_wrap=True)
        console.print(Text(cd.error, style="diff.remove"), soft_wrap=True)
    else:
        console.print(Text(header, style="component"), soft_wrap=True)
        print_diff(cd.diff.splitlines())
    console.print()


def print_summary(result: DiffResult) -> None:
    """Print aggregate statistics for a run."""
    if not result.diffs:
        console.print("\nNo render differences detected.")
        return

    console.print("\n--- Summary ---")
    for d in result.sorted_diffs():
        if d.error is not None:
            console.print(
                Text.assemble(f"  {d.path} ({d.env}): ", ("BUILD ERROR", "error")),
                soft_wrap=True,
            )
        else:
            console.print(
                Text.assemble(
                    f"  {d.path} ({d.env}): ",
                    (f"+{d.added}", "diff.add"),
                    " ",
                    (f"-{d.removed}", "diff.remove"),
                ),
                soft_wrap=True,
            )
    console.print(
        f"\nTotal: {len(result.diffs)} components, "
        f"+{result.total_added} -{result.total_removed} lines"
    )


@contextmanager
def status(message: str) -> Generator[StatusUpdater]:
    """Context manager that shows a spinner with updatable status text on stderr.

    Usage:
        with status("Building components...") as s:
            s.update("Building components... (3/10)")
    """
    updater = StatusUpdater(message)
    with Live(
        updater.spinner, console=err_console, refresh_per_second=10, transient=True
    ):
        yield updater


class StatusUpdater:
    """Helper class for updating spinner status text."""

    def __init__(self, initial_message: str):
        self.message = initial_message
        self.spinner = Spinner("dots", text=f" {initial_message}", style="cyan")

    def update(self, message: str) -> None:
        self.message = message
        self.spinner.update(text=f" {message}")
