"""Tests for logging setup."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from ralph_monitor.logging import get_logger, setup_logging


@pytest.fixture
def component():
    name = "test-component"
    yield name
    logger = logging.getLogger(f"ralph_monitor.{name}")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestSetupLogging:
    def test_writes_to_component_file(self, tmp_path: Path, component: str) -> None:
        logger = setup_logging(component, log_dir=tmp_path / "logs", console=False)

        get_logger(f"{component}.child").info("Processed file: path=%s", "/a.jsonl")
        for handler in logger.handlers:
            handler.flush()

        text = (tmp_path / "logs" / f"{component}.log").read_text()
        assert "[INFO] ralph_monitor.test-component.child: Processed file: path=/a.jsonl" in text

    def test_console_handler_optional(self, tmp_path: Path, component: str) -> None:
        quiet = setup_logging(component, log_dir=tmp_path, console=False)
        assert len(quiet.handlers) == 1
        assert isinstance(quiet.handlers[0], RotatingFileHandler)

        loud = setup_logging(component, log_dir=tmp_path, console=True)
        assert len(loud.handlers) == 2

    def test_reconfigure_replaces_handlers(self, tmp_path: Path, component: str) -> None:
        setup_logging(component, log_dir=tmp_path / "first", console=False)
        logger = setup_logging(component, log_dir=tmp_path / "second", level=logging.DEBUG, console=False)

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert Path(logger.handlers[0].baseFilename).parent == tmp_path / "second"

    def test_rotation_settings(self, tmp_path: Path, component: str) -> None:
        logger = setup_logging(component, log_dir=tmp_path, console=False, max_bytes=1024, backup_count=2)

        handler = logger.handlers[0]
        assert handler.maxBytes == 1024
        assert handler.backupCount == 2

    def test_console_level_separate_from_file(self, tmp_path: Path, component: str) -> None:
        logger = setup_logging(component, log_dir=tmp_path, level=logging.INFO, console_level=logging.WARNING)

        file_handler, console_handler = logger.handlers
        assert file_handler.level == logging.INFO
        assert console_handler.level == logging.WARNING
