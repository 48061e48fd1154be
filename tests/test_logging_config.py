"""Tests for logging setup."""

import logging

import pytest

from devmon.logging_config import configure_logging, resolve_log_level


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLogLevel:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("DEBUG", logging.DEBUG),
            ("warning", logging.WARNING),
            (" error ", logging.ERROR),
            ("verbose", logging.INFO),
            ("", logging.INFO),
            (None, logging.INFO),
        ],
    )
    def test_names(self, name, expected):
        assert resolve_log_level(name) == expected


class TestConfigureLogging:
    """Root logger configuration from DEVMON_* variables."""

    def test_default_level(self, restore_root_logging):
        assert configure_logging({}) == logging.INFO
        assert logging.getLogger().level == logging.INFO

    def test_level_from_environment(self, restore_root_logging):
        configure_logging({"DEVMON_LOG_LEVEL": "debug"})
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file(self, restore_root_logging, tmp_path):
        path = tmp_path / "devmon.log"

        configure_logging({"DEVMON_LOG_FILE": str(path)})
        logging.getLogger("devmon.engine").warning("Device down: device=%s", "router-1")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = path.read_text(encoding="utf-8")
        assert "devmon.engine - WARNING - Device down: device=router-1" in content
