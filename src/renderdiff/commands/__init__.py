"""CLI commands for render-diff."""

from renderdiff.commands.affected import affected
from renderdiff.commands.config_cmd import config
from renderdiff.commands.diff_cmd import diff

__all__ = [
    "affected",
    "config",
    "diff",
]
