import logging

import pytest

from voice_activity.logging_config import setup_logging


@pytest.fixture
def isolated_root_logger():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    root.handlers = []
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_setup_logging_adds_console_and_file_handlers(isolated_root_logger, tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_APPEND", raising=False)

    setup_logging("voice_activity", logs_dir=tmp_path)
    setup_logging("voice_activity", logs_dir=tmp_path)

    handlers = isolated_root_logger.handlers
    assert len(handlers) == 2
    assert any(isinstance(handler, logging.FileHandler) for handler in handlers)
    assert (tmp_path / "voice_activity.log").exists()
    assert logging.getLogger("redis").level == logging.WARNING


def test_user_friendly_console_only_shows_warnings(isolated_root_logger):
    setup_logging(user_friendly=True)

    (handler,) = isolated_root_logger.handlers
    assert handler.level == logging.WARNING
