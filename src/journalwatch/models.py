"""Data models for the journalwatch package."""

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from pathlib import Path
from typing import Optional
import time


class Op(IntFlag):
    """
    Operations reported for a watched object.

    DIR_CHILD is orthogonal to the others: it marks an event whose subject
    is inside a registered directory rather than a registered path itself.
    """
    CREATE = 1
    WRITE = 2
    REMOVE = 4
    RENAME = 8
    CHMOD = 16
    DIR_CHILD = 32

    def __str__(self) -> str:
        names = [op.name for op in _OP_ORDER if op in self]
        return "|".join(names)


_OP_ORDER = (Op.CREATE, Op.REMOVE, Op.WRITE, Op.RENAME, Op.CHMOD, Op.DIR_CHILD)


@dataclass(frozen=True)
class FSEvent:
    """
    A normalized filesystem event.

    Attributes:
        path: Absolute canonical path the event is about
        op: Operation flags, possibly including Op.DIR_CHILD
    """
    path: Path
    op: Op

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")

    def has(self, op: Op) -> bool:
        """Check whether all bits of op are set on this event."""
        return self.op & op == op

    @property
    def is_dir_child(self) -> bool:
        """Whether the event was reported through a watched parent directory."""
        return self.has(Op.DIR_CHILD)

    def __str__(self) -> str:
        return f"{self.op}: {self.path}"


@dataclass
class RawFSEvent:
    """
    Raw event from the OS layer before normalization.

    Attributes:
        event_type: Raw event type string (created, deleted, modified, moved)
        src_path: Source path of the event
        dest_path: Destination path (for move events)
        is_directory: Whether this is a directory event
        timestamp: Unix timestamp when the event occurred
    """
    event_type: str
    src_path: Path
    dest_path: Optional[Path] = None
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)


class SignalType(Enum):
    """Control signals sent from the event router to the journal tailer."""
    NEW_JOURNAL = "new_journal"
    JOURNAL_UPDATED = "journal_updated"
    SNAPSHOT_WRITTEN = "snapshot_written"


@dataclass(frozen=True)
class WatcherSignal:
    """
    Control signal for the journal tailer.

    Attributes:
        signal_type: The type of signal
        path: The journal or snapshot file the signal is about
        timestamp: Unix timestamp when the signal was created
    """
    signal_type: SignalType
    path: Path
    timestamp: float = field(default_factory=time.time, compare=False)
