"""
Test logging rotation functionality
"""

import logging
import tempfile
from pathlib import Path

from foreman.utils.logging import setup_logging, _rotate_log_file
from foreman.config.models import LogLevel


class TestLogRotation:
    """Test log file rotation functionality"""

    def teardown_method(self):
        root = logging.getLogger()
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)

    def test_rotate_log_file_creates_timestamped_backup(self):
        """Test that existing log file is moved with timestamp"""
        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            log_file = temp_path / "test.log"
            log_file.write_text("Previous log content\n")

            _rotate_log_file(log_file)

            assert not log_file.exists()
            rotated_files = list(temp_path.glob("test_*.log"))
            assert len(rotated_files) == 1
            assert rotated_files[0].read_text() == "Previous log content\n"

    def test_rotate_log_file_no_file_exists(self):
        """Test that rotation does nothing when no file exists"""
        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            log_file = temp_path / "nonexistent.log"

            _rotate_log_file(log_file)

            assert not log_file.exists()
            assert list(temp_path.glob("nonexistent_*.log")) == []

    def test_setup_logging_rotates_existing_file(self):
        """Test that setup_logging rotates existing log file"""
        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            log_file = temp_path / "foreman.log"
            log_file.write_text("Old log entry\n")

            setup_logging(level=LogLevel.INFO, log_file=log_file, enable_console=False)
            logging.getLogger("foreman.test").info("New entry")
            self.teardown_method()

            assert "Old log entry" not in log_file.read_text()
            assert "New entry" in log_file.read_text()
            rotated_files = list(temp_path.glob("foreman_*.log"))
            assert len(rotated_files) == 1
            assert rotated_files[0].read_text() == "Old log entry\n"

    def test_httpx_quiet_unless_debug(self):
        """Request logging from httpx is only shown at DEBUG"""
        setup_logging(level=LogLevel.INFO, enable_console=False)
        assert logging.getLogger("httpx").level == logging.WARNING
