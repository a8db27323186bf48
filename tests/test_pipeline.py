"""Tests for run planning."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from renderdiff.config import EnvironmentConfig, RenderDiffConfig
from renderdiff.errors import ConfigError
from renderdiff.models import ComponentPath
from renderdiff.pipeline import prepare_run, select_environments
from renderdiff.repository import RepoRef

OVERLAYS = "argo-cd-apps/overlays"


def _overlay(root: Path, name: str) -> None:
    path = root / OVERLAYS / name
    path.mkdir(parents=True)
    (path / "kustomization.yaml").write_text(yaml.safe_dump({"resources": []}))


class TestSelectEnvironments:
    def test_auto_discovery_without_filter(self, tmp_path: Path):
        assert select_environments(RenderDiffConfig(), RepoRef(tmp_path), OVERLAYS) is None

    def test_configured_environments(self, tmp_path: Path):
        config = RenderDiffConfig(
            environments=[
                EnvironmentConfig(name="staging", aliases=["stg"]),
                EnvironmentConfig(name="prod", overlay="production"),
            ]
        )

        assert select_environments(config, RepoRef(tmp_path), OVERLAYS) == {
            "staging": "staging",
            "prod": "production",
        }
        assert select_environments(config, RepoRef(tmp_path), OVERLAYS, ["stg"]) == {
            "staging": "staging"
        }

    def test_filter_on_discovered_overlays(self, tmp_path: Path):
        _overlay(tmp_path, "staging")
        _overlay(tmp_path, "production")

        assert select_environments(
            RenderDiffConfig(), RepoRef(tmp_path), OVERLAYS, ["production"]
        ) == {"production": "production"}

    def test_unknown_environment(self, tmp_path: Path):
        _overlay(tmp_path, "staging")

        with pytest.raises(ConfigError, match="Unknown environment 'qa'"):
            select_environments(RenderDiffConfig(), RepoRef(tmp_path), OVERLAYS, ["qa"])


class TestPrepareRun:
    @patch("renderdiff.pipeline.git")
    def test_no_changes_skips_worktree(self, mock_git: MagicMock, tmp_path: Path):
        mock_git.merge_base.return_value = "base-sha"
        mock_git.resolve_ref.side_effect = lambda root, ref: f"{ref}-resolved"
        mock_git.changed_files.return_value = []

        with prepare_run(RenderDiffConfig(), tmp_path) as plan:
            assert plan.changed_files == []
            assert plan.affected == {}
            assert plan.base is plan.head
            assert plan.base_ref == "base-sha"

        mock_git.merge_base.assert_called_once_with(tmp_path.resolve(), "main")
        mock_git.worktree.assert_not_called()

    @patch("renderdiff.pipeline.Detector")
    @patch("renderdiff.pipeline.git")
    def test_detects_in_base_worktree(
        self, mock_git: MagicMock, mock_detector: MagicMock, tmp_path: Path
    ):
        worktree_path = tmp_path / "wt"
        mock_git.resolve_ref.side_effect = lambda root, ref: f"{ref}-sha"
        mock_git.changed_files.return_value = ["components/foo/staging/x.yaml"]
        removed: list[bool] = []

        @contextmanager
        def fake_worktree(root, ref):
            yield worktree_path
            removed.append(True)

        mock_git.worktree.side_effect = fake_worktree
        mock_detector.return_value.affected_components.return_value = {
            "staging": [ComponentPath("components/foo/staging")]
        }

        with prepare_run(RenderDiffConfig(), tmp_path, base_ref="origin/main") as plan:
            assert plan.base.root == worktree_path
            assert plan.head.root == tmp_path.resolve()
            assert plan.head_sha == "HEAD-sha"
            assert plan.base_sha == "origin/main-sha"
            assert plan.total_jobs == 1
            assert removed == []

        assert removed == [True]
        mock_git.merge_base.assert_not_called()
        args = mock_detector.call_args[0]
        assert args[2] == OVERLAYS
        assert args[3] is None
