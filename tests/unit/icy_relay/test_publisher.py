"""Unit tests for the title file publisher."""

import logging
from unittest.mock import Mock, patch

import pytest

from icy_relay.publisher import TitlePublisher


@pytest.fixture
def publisher(title_file):
    """Create a TitlePublisher with its directory in place."""
    title_file.parent.mkdir(parents=True)
    return TitlePublisher(title_file)


class TestTitlePublisher:
    """Test title file writes."""

    def test_publish_writes_title(self, publisher, title_file):
        """Test a new title lands in the file without extra structure."""
        assert publisher.publish("Test Song") is True

        assert title_file.read_text(encoding="utf-8") == "Test Song"
        assert publisher.current_title == "Test Song"

    def test_same_title_written_once(self, publisher, title_file):
        """Test repeating a title does not rewrite the file."""
        publisher.publish("Test Song")
        publisher.publish("Test Song")

        assert publisher.writes == 1

    def test_changed_title_overwrites(self, publisher, title_file):
        """Test a different title replaces the previous one."""
        publisher.publish("First")
        publisher.publish("Second")

        assert title_file.read_text(encoding="utf-8") == "Second"
        assert publisher.writes == 2

    def test_unicode_title(self, publisher, title_file):
        """Test titles are written as UTF-8."""
        publisher.publish("Sigur Rós – Hoppípolla")

        assert title_file.read_bytes() == "Sigur Rós – Hoppípolla".encode("utf-8")

    def test_write_failure_swallowed(self, tmp_path):
        """Test a failing write is logged and reported, not raised."""
        log = Mock(spec=logging.Logger)
        publisher = TitlePublisher(tmp_path / "missing" / "dir" / "title.txt", log=log)

        assert publisher.publish("Test Song") is False
        assert publisher.current_title is None
        assert publisher.writes == 0
        log.info.assert_called_once()

    def test_failed_title_retried(self, publisher, title_file):
        """Test a title is written again after a failed attempt."""
        with patch.object(type(title_file), "write_text", side_effect=OSError("disk full")):
            assert publisher.publish("Test Song") is False

        assert publisher.publish("Test Song") is True
        assert title_file.read_text(encoding="utf-8") == "Test Song"


class TestClear:
    """Test clearing the title file."""

    def test_clear_empties_file(self, publisher, title_file):
        """Test clear leaves an empty file."""
        publisher.publish("Test Song")
        publisher.clear()

        assert title_file.read_text(encoding="utf-8") == ""
        assert publisher.current_title is None

    def test_clear_missing_file_is_noop(self, publisher, title_file):
        """Test clearing a file that does not exist does not create it."""
        publisher.clear()

        assert not title_file.exists()

    def test_clear_is_idempotent(self, publisher, title_file):
        """Test clearing twice is harmless."""
        publisher.publish("Test Song")
        publisher.clear()
        publisher.clear()

        assert title_file.read_text(encoding="utf-8") == ""

    def test_republish_after_clear(self, publisher, title_file):
        """Test the same title is written again once the file was cleared."""
        publisher.publish("Test Song")
        publisher.clear()
        publisher.publish("Test Song")

        assert title_file.read_text(encoding="utf-8") == "Test Song"
        assert publisher.writes == 2

    def test_clear_failure_swallowed(self, publisher, title_file):
        """Test a failing clear does not raise."""
        publisher.publish("Test Song")
        with patch.object(type(title_file), "write_text", side_effect=PermissionError("denied")):
            publisher.clear()


class TestEnsureDirectory:
    """Test title directory bootstrapping."""

    def test_creates_parent(self, title_file):
        """Test missing parent directories are created."""
        publisher = TitlePublisher(title_file)

        publisher.ensure_directory()

        assert title_file.parent.is_dir()

    def test_existing_directory_untouched(self, publisher, title_file):
        """Test an existing directory is accepted."""
        publisher.ensure_directory()

        assert title_file.parent.is_dir()
