"""Custom exceptions for the journalwatch package."""


class JournalWatchError(Exception):
    """Base exception for all journalwatch errors."""
    pass


class SetupError(JournalWatchError):
    """Fatal error while setting up the watch; ends the whole run."""
    pass


class DirectoryNotFoundError(SetupError):
    """The journal directory does not exist."""
    pass


class WatchError(SetupError):
    """The OS layer refused to register a watch."""
    pass


class TailError(JournalWatchError):
    """Reading from a tailed file failed."""
    pass


class DecodeError(JournalWatchError):
    """A journal line or snapshot file could not be decoded."""
    pass


class NotASnapshotError(DecodeError):
    """The filename is not one of the known snapshot files."""
    pass


class ShutdownError(JournalWatchError):
    """A blocking operation was abandoned because shutdown is in progress."""
    pass


class QueueError(JournalWatchError):
    """Error related to a bounded queue."""
    pass


class QueueClosedError(QueueError):
    """The queue has been closed."""
    pass


class WatcherNotRunningError(JournalWatchError):
    """The watcher loop is not running."""
    pass


class WatcherAlreadyRunningError(JournalWatchError):
    """The watcher loop is already running."""
    pass
