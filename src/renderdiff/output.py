"""Output modes for render-diff results.

Every function here only reads the DiffResult it is given.
"""

from __future__ import annotations

import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import IO, TYPE_CHECKING

from loguru import logger

from renderdiff import console as con
from renderdiff.errors import GitHubError
from renderdiff.github import CommentClient

if TYPE_CHECKING:
    from renderdiff.config import CISettings, GitHubConfig
    from renderdiff.models import DiffResult

DEFAULT_TRUNCATE_BYTES = 50 * 1024


def diff_file_name(component_path: str, env: str) -> str:
    """Convert a component path and environment to a safe filename.

    e.g. "components/foo/staging" + "staging" -> "components__foo__staging__staging.diff"
    """
    safe: str = component_path.replace("/", "__")
    return f"{safe}__{env}.diff"


def write_diff_files(result: DiffResult, directory: Path) -> list[Path]:
    """Write one .diff file per component. Build errors are written as-is."""
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for d in result.sorted_diffs():
        path: Path = directory / diff_file_name(d.path, d.env)
        content: str = d.diff if d.error is None else f"BUILD ERROR: {d.error}\n"
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


def render_ci_summary(
    result: DiffResult, truncate_bytes: int = DEFAULT_TRUNCATE_BYTES
) -> str:
    """Build the markdown for a CI job summary."""
    if not result.diffs:
        return "No render differences detected.\n"

    lines: list[str] = [
        "# Kustomize Render Diff",
        "",
        f"**{len(result.diffs)} components** with differences "
        f"(+{result.total_added} -{result.total_removed} lines)",
        "",
    ]

    for d in result.sorted_diffs():
        if d.error is not None:
            lines.append("<details>")
            lines.append(f"<summary>{d.path} ({d.env}) — build error</summary>")
            lines.append("")
            lines.append(f"```\n{d.error}\n```")
            lines.append("")
            lines.append("</details>")
            lines.append("")
            continue

        lines.append("<details>")
        lines.append(f"<summary>{d.path} ({d.env}) — +{d.added} -{d.removed}</summary>")
        lines.append("")
        encoded: bytes = d.diff.encode("utf-8")
        if len(encoded) > truncate_bytes:
            truncated: str = encoded[:truncate_bytes].decode("utf-8", errors="ignore")
            lines.append(f"```diff\n{truncated}\n```")
            lines.append("")
            lines.append(
                "⚠️ Diff truncated. Download the full artifact for the complete diff."
            )
        else:
            lines.append(f"```diff\n{d.diff}\n```")
            lines.append("")
        lines.append("</details>")
        lines.append("")

    return "\n".join(lines)


def write_ci_summary(
    result: DiffResult,
    summary_path: str | None = None,
    truncate_bytes: int = DEFAULT_TRUNCATE_BYTES,
    stream: IO[str] | None = None,
) -> None:
    """Append the CI summary to summary_path, or write it to stream/stdout."""
    content: str = render_ci_summary(result, truncate_bytes)
    if summary_path:
        with open(summary_path, "a", encoding="utf-8") as f:
            f.write(content)
        return
    (stream or sys.stdout).write(content)


def build_comment_body(
    result: DiffResult,
    head_sha: str,
    base_sha: str,
    marker: str = "<!-- render-diff-comment -->",
) -> str:
    """Build the markdown for a pull request comment."""
    lines: list[str] = [
        marker,
        "### Kustomize Render Diff",
        "",
        f"Comparing `{base_sha}` → `{head_sha}`",
        "",
    ]

    if not result.diffs:
        lines.append("No render differences detected.")
        return "\n".join(lines) + "\n"

    lines.append("| Component | Environment | Changes |")
    lines.append("|-----------|-------------|---------|")
    for d in result.sorted_diffs():
        if d.error is not None:
            lines.append(f"| `{d.path}` | {d.env} | build error |")
        else:
            lines.append(f"| `{d.path}` | {d.env} | +{d.added} -{d.removed} |")
    lines.append("")
    lines.append(
        f"**Total:** {len(result.diffs)} components, "
        f"+{result.total_added} -{result.total_removed} lines"
    )
    lines.append("")
    lines.append(
        "📋 Full diff available in the [workflow summary](../actions) "
        "and as a downloadable artifact."
    )
    return "\n".join(lines) + "\n"


def post_ci_comment(
    result: DiffResult,
    head_sha: str,
    base_sha: str,
    ci: CISettings,
    github: GitHubConfig,
    stream: IO[str] | None = None,
) -> None:
    """Post the comment to the PR, or print it when CI variables are missing.

    Raises:
        GitHubError: if PR_NUMBER is invalid or the API call fails
    """
    body: str = build_comment_body(result, head_sha, base_sha, github.comment_marker)

    if not ci.can_comment:
        (stream or sys.stdout).write(body)
        return

    try:
        pr_number = int(ci.pr_number or "")
    except ValueError:
        pr_number = 0
    if pr_number <= 0:
        raise GitHubError(f"invalid PR_NUMBER {ci.pr_number!r}")

    with CommentClient(
        token=ci.github_token or "",
        repository=ci.github_repository or "",
        api_url=github.api_url,
        marker=github.comment_marker,
        timeout=github.timeout_seconds,
    ) as client:
        client.upsert_comment(pr_number, body)
    logger.info("PR comment posted on #{}", pr_number)


def open_in_difftool(result: DiffResult, difftool: str | None = None) -> None:
    """Write base and head YAML into two directories and open a folder diff.

    Uses $DIFFTOOL when set, otherwise 'git difftool --dir-diff'. The
    directories are left in place since GUI tools may still be reading them
    after the command returns.
    """
    if not result.diffs:
        con.console.print("No render differences to display.")
        return

    base_dir = Path(tempfile.mkdtemp(prefix="render-diff-base-"))
    head_dir = Path(tempfile.mkdtemp(prefix="render-diff-head-"))

    for d in result.sorted_diffs():
        name: str = diff_file_name(d.path, d.env).removesuffix(".diff") + ".yaml"
        head_yaml: bytes = d.head_yaml or b""
        if d.error:
            # error entries carry the build error as a YAML comment
            head_yaml = f"# BUILD ERROR: {d.error}\n".encode() + head_yaml
        (base_dir / name).write_bytes(d.base_yaml or b"")
        (head_dir / name).write_bytes(head_yaml)

    tool: str | None = difftool if difftool is not None else os.environ.get("DIFFTOOL")
    if tool:
        cmd: list[str] = [tool, str(base_dir), str(head_dir)]
    else:
        cmd = [
            "git",
            "difftool",
            "--no-index",
            "--dir-diff",
            str(base_dir),
            str(head_dir),
        ]

    con.console.print(f"Opening folder diff: {base_dir} vs {head_dir}")
    completed = subprocess.run(cmd, check=False)
    if completed.returncode != 0:
        # diff tools exit non-zero when the inputs differ
        logger.debug("Diff tool exited with {}", completed.returncode)
