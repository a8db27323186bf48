"""Unified diff computation for rendered manifests."""

from __future__ import annotations

import difflib

from renderdiff.errors import DiffComputationError

CONTEXT_LINES = 3


def compute_diff(
    base: bytes | None, head: bytes | None, label: str
) -> tuple[str, int, int]:
    """Diff two rendered manifest blobs.

    A missing blob is treated as empty. Byte-identical inputs short-circuit to
    no diff without running the diff algorithm. Bytes that are not valid
    UTF-8 still diff by their raw value and are shown as U+FFFD.

    Args:
        base: Rendered YAML on the base ref, or None if absent
        head: Rendered YAML on HEAD, or None if absent
        label: Component path used in the '---'/'+++' file headers

    Returns:
        Tuple of (diff_text, added, removed)

    Raises:
        DiffComputationError: if diffing fails
    """
    base_bytes: bytes = base or b""
    head_bytes: bytes = head or b""

    if base_bytes == head_bytes:
        return "", 0, 0

    try:
        diff_lines: list[str] = list(
            difflib.unified_diff(
                split_lines(base_bytes.decode("utf-8", errors="surrogateescape")),
                split_lines(head_bytes.decode("utf-8", errors="surrogateescape")),
                fromfile=f"{label} (base)",
                tofile=f"{label} (head)",
                n=CONTEXT_LINES,
            )
        )
    except (ValueError, TypeError) as e:
        raise DiffComputationError(f"diffing {label}: {e}") from e

    text: str = "".join(_terminate(line) for line in diff_lines)
    added, removed = count_stats(text)
    # undecodable bytes become U+FFFD so the text can be printed and written
    text = text.encode("utf-8", errors="surrogateescape").decode(
        "utf-8", errors="replace"
    )
    return text, added, removed


def split_lines(text: str) -> list[str]:
    """Split on '\\n' only, keeping the terminator on every line."""
    parts: list[str] = text.split("\n")
    lines: list[str] = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _terminate(line: str) -> str:
    # difflib leaves the last line unterminated when the input lacks a final newline
    if line.endswith("\n"):
        return line
    return line + "\n"


def count_stats(diff_text: str) -> tuple[int, int]:
    """Count added and removed lines in a unified diff, skipping file headers."""
    added = 0
    removed = 0
    for line in diff_text.split("\n"):
        if not line:
            continue
        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            removed += 1
    return added, removed
