"""
Unit tests for the logging setup.
"""

import logging

import pytest

from tokenauction.utils.logger import LOG_FILE_NAME, AuctionLogger, get_logger, setup_logging


@pytest.fixture(autouse=True)
def fresh_logger():
    """Reset the tokenauction logger tree around each test."""
    root = logging.getLogger("tokenauction")
    saved = (list(root.handlers), root.level, AuctionLogger._initialized, AuctionLogger._log_dir)
    root.handlers.clear()
    AuctionLogger._initialized = False
    AuctionLogger._log_dir = None
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    AuctionLogger._initialized, AuctionLogger._log_dir = saved[2], saved[3]


class TestLogger:
    """Tests for get_logger / setup_logging."""

    def test_subsystem_namespace(self):
        assert get_logger("engine").name == "tokenauction.engine"

    def test_first_use_installs_one_console_handler(self):
        get_logger("chain")
        get_logger("token")
        assert len(logging.getLogger("tokenauction").handlers) == 1

    def test_setup_relevels_existing_handlers(self):
        get_logger("chain")
        setup_logging(level=logging.DEBUG)

        root = logging.getLogger("tokenauction")
        assert root.level == logging.DEBUG
        assert all(handler.level == logging.DEBUG for handler in root.handlers)

    def test_file_handler(self, tmp_path):
        setup_logging(level=logging.INFO, log_dir=str(tmp_path / "logs"), log_to_file=True)

        get_logger("engine").info("epoch 1 finalized")
        for handler in logging.getLogger("tokenauction").handlers:
            handler.flush()

        text = (tmp_path / "logs" / LOG_FILE_NAME).read_text()
        assert "[tokenauction.engine] INFO" in text
        assert "epoch 1 finalized" in text

    def test_file_handler_added_once(self, tmp_path):
        setup_logging(log_dir=str(tmp_path), log_to_file=True)
        setup_logging(log_dir=str(tmp_path), log_to_file=True)
        assert len(logging.getLogger("tokenauction").handlers) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
