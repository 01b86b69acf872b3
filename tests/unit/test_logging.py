"""Tests for logging configuration."""

import logging

from fundhost.config import get_settings
from fundhost.services.logging import get_log_level, setup_logging


class TestSetupLogging:
    """Root logger configuration."""

    def setup_method(self):
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory(self, tmp_path) -> None:
        log_file = tmp_path / "logs" / "fundhost.log"
        assert not log_file.parent.exists()

        setup_logging(str(log_file))

        assert log_file.parent.exists()

    def test_stdout_only_without_file(self, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "log_file", None)
        setup_logging()
        assert len(self.root_logger.handlers) == 1

    def test_level_from_settings(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setattr(get_settings(), "log_level", "warning")
        setup_logging(str(tmp_path / "fundhost.log"))

        assert self.root_logger.level == logging.WARNING
        for handler in self.root_logger.handlers:
            assert handler.level == logging.WARNING

    def test_unknown_level_defaults_to_info(self, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "log_level", "CHATTY")
        assert get_log_level() == logging.INFO

    def test_writes_name_and_level(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setattr(get_settings(), "log_level", "INFO")
        log_file = tmp_path / "fundhost.log"
        setup_logging(str(log_file))

        logging.getLogger("fundhost.services.expense").warning("Expense 42 paid")

        contents = log_file.read_text()
        assert "fundhost.services.expense - WARNING - Expense 42 paid" in contents
        assert contents.startswith("[20")

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path) -> None:
        dummy_handler = logging.StreamHandler()
        self.root_logger.addHandler(dummy_handler)
        log_file = tmp_path / "fundhost.log"

        setup_logging(str(log_file))
        setup_logging(str(log_file))

        assert len(self.root_logger.handlers) == 2
        assert dummy_handler not in self.root_logger.handlers
