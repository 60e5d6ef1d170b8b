"""Current track title publisher.

Keeps a plain text file in sync with the title of the track being relayed, so
overlay tools (e.g. an OBS text source reading from file) can display it.
"""

import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class TitlePublisher:
    """Writes the current track title to a text file on change only."""

    def __init__(self, path: Union[str, Path], log: Optional[logging.Logger] = None):
        """Initialize publisher.

        Args:
            path: Title file location.
            log: Message sink for status lines (defaults to module logger).
        """
        self.path = Path(path)
        self.log = log or logger
        self.current_title: Optional[str] = None
        self.writes = 0

    def ensure_directory(self) -> None:
        """Create the parent directory of the title file if it is missing."""
        directory = self.path.parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            self.log.info(f"Created title directory: {directory}")

    def publish(self, title: str) -> bool:
        """Write a title to the file if it changed.

        Args:
            title: Track title to publish.

        Returns:
            bool: True if the file holds ``title`` afterwards, False if the
            write failed.
        """
        if title == self.current_title:
            return True

        try:
            self.path.write_text(title, encoding="utf-8")
        except OSError as e:
            self.log.info(f"Failed to update file {self.path}: {e}")
            return False

        self.current_title = title
        self.writes += 1
        return True

    def clear(self) -> None:
        """Empty the title file. A missing file is left missing."""
        self.current_title = None
        if not self.path.exists():
            return

        try:
            self.path.write_text("", encoding="utf-8")
            self.log.debug(f"Cleared title file {self.path}")
        except OSError as e:
            self.log.info(f"Failed to clear file {self.path}: {e}")
