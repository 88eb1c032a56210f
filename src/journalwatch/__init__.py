"""
journalwatch

Watches a directory of rotating, append-only journal files and
overwrite-in-place snapshot files, and turns filesystem notifications
into an ordered stream of decoded records.

Features:
- Deduplicated watch registration with directory-child classification
- Incremental tailing that tolerates partial writes
- Automatic switch to the newest journal file
- Snapshot re-reads on rewrite
- Event-name allow-list with a byte-level fast path
- One cooperative shutdown signal across all threads
"""

from .models import (
    Op,
    FSEvent,
    RawFSEvent,
    SignalType,
    WatcherSignal,
)

from .config import WatcherConfig, default_journal_dir

from .exceptions import (
    JournalWatchError,
    SetupError,
    DirectoryNotFoundError,
    WatchError,
    TailError,
    DecodeError,
    NotASnapshotError,
    ShutdownError,
    QueueError,
    QueueClosedError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
)

from .shutdown import Shutdown
from .queue import BoundedQueue
from .registry import WatchRegistry
from .fs_watcher import DirectoryWatcher, FSEventHandler
from .tail import Tail
from .records import (
    Record,
    JournalEntry,
    Cargo,
    Market,
    ModulesInfo,
    NavRoute,
    Outfitting,
    Shipyard,
    Status,
    ShipLocker,
    SNAPSHOT_TYPES,
    is_snapshot_file,
    parse_journal_line,
    parse_snapshot_contents,
    parse_snapshot_file,
    sniff_event_name,
    sniff_timestamp,
)
from .event_filter import EventFilter
from .process import JournalWatcher


__all__ = [
    # Models
    "Op",
    "FSEvent",
    "RawFSEvent",
    "SignalType",
    "WatcherSignal",
    # Config
    "WatcherConfig",
    "default_journal_dir",
    # Exceptions
    "JournalWatchError",
    "SetupError",
    "DirectoryNotFoundError",
    "WatchError",
    "TailError",
    "DecodeError",
    "NotASnapshotError",
    "ShutdownError",
    "QueueError",
    "QueueClosedError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    # Components
    "Shutdown",
    "BoundedQueue",
    "WatchRegistry",
    "DirectoryWatcher",
    "FSEventHandler",
    "Tail",
    "EventFilter",
    # Records
    "Record",
    "JournalEntry",
    "Cargo",
    "Market",
    "ModulesInfo",
    "NavRoute",
    "Outfitting",
    "Shipyard",
    "Status",
    "ShipLocker",
    "SNAPSHOT_TYPES",
    "is_snapshot_file",
    "parse_journal_line",
    "parse_snapshot_contents",
    "parse_snapshot_file",
    "sniff_event_name",
    "sniff_timestamp",
    # Main Process
    "JournalWatcher",
]

__version__ = "0.1.0"
