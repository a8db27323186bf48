from __future__ import annotations

from pathlib import Path

from loguru import logger

from renderdiff.logs import setup_logging


class TestSetupLogging:
    def test_file_sink_receives_debug(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "render-diff.log"
        cleanup = setup_logging(log_file, verbose=False)
        try:
            logger.bind(component="engine").debug("dispatching {} jobs", 3)
        finally:
            cleanup()

        content = log_file.read_text()
        assert "dispatching 3 jobs" in content
        assert "'component': 'engine'" in content

    def test_cleanup_is_idempotent(self):
        cleanup = setup_logging()
        cleanup()
        cleanup()
