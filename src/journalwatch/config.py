"""Configuration for the journalwatch package."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set


def default_journal_dir() -> Path:
    """Get the directory the game writes its journal to by default."""
    return Path.home() / "Saved Games" / "Frontier Developments" / "Elite Dangerous"


@dataclass
class WatcherConfig:
    """
    Configuration options for the journal watcher.

    Attributes:
        journal_dir: Directory holding the journal and snapshot files
        event_filter: Event names to keep; empty keeps everything
        record_queue_size: Capacity of the decoded record queue
        event_queue_size: Capacity of the normalized filesystem event queue
        signal_queue_size: Capacity of the router-to-tailer signal queue
        start_at_end: Skip the backlog of the first journal selected
        journal_pattern: Regex matched against lower-cased journal basenames
    """
    journal_dir: Path = field(default_factory=default_journal_dir)
    event_filter: Set[str] = field(default_factory=set)
    record_queue_size: int = 10
    event_queue_size: int = 1
    signal_queue_size: int = 1
    start_at_end: bool = False
    journal_pattern: str = r"^journal\.[0-9]+\.[0-9]+\.log$"

    def __post_init__(self):
        if isinstance(self.journal_dir, str):
            self.journal_dir = Path(self.journal_dir)
        self.journal_dir = self.journal_dir.expanduser()
        self.event_filter = set(self.event_filter)
        for name in ("record_queue_size", "event_queue_size", "signal_queue_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        self._journal_re = re.compile(self.journal_pattern)

    def is_journal_file(self, path: Path) -> bool:
        """
        Check if a path names a journal file.

        Args:
            path: Path or basename to check

        Returns:
            True if the lower-cased basename matches journal_pattern
        """
        return self._journal_re.match(Path(path).name.lower()) is not None

    @classmethod
    def from_env(cls) -> "WatcherConfig":
        """
        Build a configuration from JOURNALWATCH_* environment variables.

        Unset variables keep their defaults.
        """
        kwargs = {}
        if os.environ.get("JOURNALWATCH_DIR"):
            kwargs["journal_dir"] = Path(os.environ["JOURNALWATCH_DIR"])
        if os.environ.get("JOURNALWATCH_EVENTS"):
            kwargs["event_filter"] = {
                name.strip() for name in os.environ["JOURNALWATCH_EVENTS"].split(",") if name.strip()
            }
        if os.environ.get("JOURNALWATCH_QUEUE_SIZE"):
            kwargs["record_queue_size"] = int(os.environ["JOURNALWATCH_QUEUE_SIZE"])
        if os.environ.get("JOURNALWATCH_START_AT_END"):
            kwargs["start_at_end"] = os.environ["JOURNALWATCH_START_AT_END"].lower() in ("1", "true", "yes")
        return cls(**kwargs)
