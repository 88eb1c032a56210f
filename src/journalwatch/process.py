"""Journal watcher orchestrator."""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Set, Tuple

from watchdog.observers import Observer

from .config import WatcherConfig
from .event_filter import EventFilter
from .exceptions import (
    DecodeError,
    DirectoryNotFoundError,
    JournalWatchError,
    QueueClosedError,
    SetupError,
    ShutdownError,
    TailError,
    WatchError,
    WatcherAlreadyRunningError,
    WatcherNotRunningError,
)
from .fs_watcher import DirectoryWatcher
from .models import FSEvent, Op, SignalType, WatcherSignal
from .queue import BoundedQueue
from .records import Record, is_snapshot_file, parse_snapshot_file
from .registry import canonical_path
from .shutdown import Shutdown
from .tail import Tail

logger = logging.getLogger(__name__)


class JournalWatcher:
    """
    Turns a journal directory into an ordered stream of decoded records.

    Three threads cooperate while running:
    - DirectoryWatcher: the watchdog-backed event loop
    - EventRouter: classifies filesystem events into control signals
    - JournalTailer: executes signals one at a time, tailing the current
      journal or re-reading a snapshot file, and publishes records

    Only the lexicographically greatest journal is tailed; the selection
    never moves back to an older file. The tail and the selection state
    belong to the JournalTailer thread.
    """

    def __init__(
        self,
        config: Optional[WatcherConfig] = None,
        shutdown: Optional[Shutdown] = None,
        observer_factory: Callable[[], Any] = Observer,
    ):
        """
        Initialize the journal watcher.

        Args:
            config: Watcher configuration
            shutdown: Shutdown shared with the surrounding application
            observer_factory: Factory for the watchdog observer
        """
        self.config = config or WatcherConfig()
        self.shutdown = shutdown or Shutdown()
        self.journal_dir = canonical_path(self.config.journal_dir)
        self.records = BoundedQueue(self.config.record_queue_size)

        self._filter = EventFilter(self.config.event_filter)
        self._watcher = DirectoryWatcher(
            self.shutdown,
            event_queue_size=self.config.event_queue_size,
            observer_factory=observer_factory,
        )
        self._signals = BoundedQueue(self.config.signal_queue_size)
        self._pending_updates: Set[Path] = set()
        self._pending_lock = threading.Lock()

        self._tail: Optional[Tail] = None
        self._lost: Optional[Tuple[str, int]] = None
        self._needs_rescan = False

        self._running = False
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def current_journal(self) -> Optional[Path]:
        """The journal currently being tailed, if any."""
        tail = self._tail
        return tail.path if tail is not None else None

    @property
    def directory_watcher(self) -> DirectoryWatcher:
        """The underlying directory watcher."""
        return self._watcher

    @property
    def is_running(self) -> bool:
        """Check if the watcher threads have been started."""
        return self._running

    # -- journal selection ---------------------------------------------------

    def _check_directory(self) -> None:
        if not self.journal_dir.is_dir():
            raise DirectoryNotFoundError(f"Journal directory does not exist: {self.journal_dir}")

    def setup_initial_journal(self, start_at_end: Optional[bool] = None) -> Optional[Path]:
        """
        Select the newest journal in the directory.

        Args:
            start_at_end: Skip the selected journal's existing content;
                defaults to config.start_at_end

        Returns:
            The selected journal, or None if there is none

        Raises:
            DirectoryNotFoundError: If the directory is missing
            SetupError: If the directory cannot be listed
        """
        self._check_directory()
        try:
            journals = [p for p in self.journal_dir.iterdir() if self.config.is_journal_file(p)]
        except OSError as e:
            raise SetupError(f"Cannot list journal directory {self.journal_dir}: {e}") from e

        if not journals:
            logger.info(f"No journal files in {self.journal_dir}")
            return None

        if start_at_end is None:
            start_at_end = self.config.start_at_end
        newest = max(journals, key=lambda p: p.name.lower())
        self.maybe_set_journal(newest, start_at_end=start_at_end)
        return self.current_journal

    def maybe_set_journal(self, path: Path, start_at_end: bool = False) -> bool:
        """
        Switch to a journal if it is newer than the current one.

        Args:
            path: Candidate journal file
            start_at_end: Skip the candidate's existing content

        Returns:
            True if the candidate became the current journal
        """
        path = canonical_path(path)
        name = path.name.lower()

        if self._tail is not None:
            current = self._tail.path.name.lower()
            if current >= name:
                logger.debug(f"Keeping journal {self._tail.path.name}, not switching to {path.name}")
                return False
            self._tail.close()
            self._tail = None

        offset = None
        if self._lost is not None and self._lost[0] == name:
            offset = self._lost[1]
            try:
                if path.stat().st_size < offset:
                    offset = None
            except OSError:
                offset = None

        try:
            self._tail = Tail(path, start_at_end=start_at_end, offset=offset)
        except OSError as e:
            logger.error(f"Cannot open journal {path}: {e}")
            return False

        self._lost = None
        self._needs_rescan = False
        logger.info(f"Journal selected: {path}")
        return True

    def _rescan(self) -> None:
        self._needs_rescan = False
        try:
            self.setup_initial_journal(start_at_end=False)
        except SetupError as e:
            logger.error(f"Journal rescan failed: {e}")

    # -- reading ---------------------------------------------------------------

    def tail_journal(self) -> int:
        """
        Deliver every new complete line of the current journal.

        Returns:
            Number of lines read (including filtered ones)
        """
        if self._tail is None and self._needs_rescan:
            self._rescan()
        if self._tail is None:
            return 0

        try:
            return self._tail.process_lines(self._handle_line)
        except ShutdownError:
            return 0
        except TailError as e:
            logger.error(f"Lost journal {self._tail.path.name}: {e}")
            self._lost = (self._tail.path.name.lower(), self._tail.offset)
            self._tail.close()
            self._tail = None
            self._needs_rescan = True
            return 0

    def _handle_line(self, line: bytes) -> None:
        record = self._filter.decode_line(line)
        if record is not None:
            self._publish(record)

    def _publish(self, record: Record) -> None:
        self.records.enqueue(record, self.shutdown)

    def read_snapshot(self, path: Path) -> bool:
        """
        Re-read a snapshot file and publish its record.

        Args:
            path: Snapshot file

        Returns:
            True if a record was published
        """
        logger.debug(f"Snapshot: {path}")
        try:
            record = parse_snapshot_file(path)
        except DecodeError as e:
            logger.debug(f"Dropping snapshot {Path(path).name}: {e}")
            return False

        if not self._filter.allows_record(record):
            return False
        try:
            self._publish(record)
        except ShutdownError:
            return False
        return True

    def catch_up(self) -> None:
        """Read every snapshot file present, then drain the current journal."""
        try:
            snapshots = sorted(p for p in self.journal_dir.iterdir() if is_snapshot_file(p))
        except OSError as e:
            logger.error(f"Cannot list journal directory {self.journal_dir}: {e}")
            snapshots = []

        for path in snapshots:
            if self.shutdown.is_dying:
                return
            self.read_snapshot(canonical_path(path))
        self.tail_journal()

    # -- routing -------------------------------------------------------------

    def handle_event(self, event: FSEvent) -> None:
        """
        Turn a filesystem event into a control signal for the tailer.

        Args:
            event: Normalized filesystem event

        Raises:
            ShutdownError: If shutdown fires while sending a signal
        """
        if not event.is_dir_child and event.path == self.journal_dir:
            if event.op & (Op.REMOVE | Op.RENAME):
                logger.warning(f"Journal directory went away: {event}")
            return

        path = event.path
        if event.has(Op.WRITE):
            if is_snapshot_file(path):
                self._send(WatcherSignal(SignalType.SNAPSHOT_WRITTEN, path))
            elif self.config.is_journal_file(path):
                self._signal_update(path)
            else:
                logger.debug(f"Unknown file: {path.name}")
        elif event.has(Op.CREATE):
            if self.config.is_journal_file(path):
                self._send(WatcherSignal(SignalType.NEW_JOURNAL, path))

    def _send(self, signal: WatcherSignal) -> None:
        self._signals.enqueue(signal, self.shutdown)

    def _signal_update(self, path: Path) -> bool:
        # An undelivered update for the same file already covers this write.
        with self._pending_lock:
            if path in self._pending_updates:
                return False
            self._pending_updates.add(path)
        try:
            self._send(WatcherSignal(SignalType.JOURNAL_UPDATED, path))
        except ShutdownError:
            with self._pending_lock:
                self._pending_updates.discard(path)
            raise
        return True

    def process_next_signal(self) -> bool:
        """
        Wait for the next control signal and execute it.

        Returns:
            False once shutdown has been requested
        """
        try:
            signal = self._signals.dequeue(self.shutdown)
        except (ShutdownError, QueueClosedError):
            return False

        if signal.signal_type == SignalType.SNAPSHOT_WRITTEN:
            self.read_snapshot(signal.path)
            return True

        if signal.signal_type == SignalType.JOURNAL_UPDATED:
            with self._pending_lock:
                self._pending_updates.discard(signal.path)

        if self._tail is None and self._needs_rescan:
            self._rescan()
        if self._tail is None or self._tail.path != signal.path:
            self.maybe_set_journal(signal.path)
        self.tail_journal()
        return True

    # -- threads -------------------------------------------------------------

    def _route_loop(self) -> None:
        try:
            self._watcher.add_watch(self.journal_dir)
        except ShutdownError:
            return
        except (WatchError, WatcherNotRunningError) as e:
            logger.error(f"Cannot watch {self.journal_dir}: {e}")
            self.shutdown.kill(e if isinstance(e, SetupError) else SetupError(str(e)))
            return

        while True:
            try:
                event = self._watcher.events.dequeue(self.shutdown)
                self.handle_event(event)
            except ShutdownError:
                return
            except QueueClosedError:
                # The directory watcher is gone; nothing would ever wake the tailer.
                self.shutdown.kill(WatchError(f"Filesystem notifications for {self.journal_dir} stopped"))
                return

    def _tail_loop(self) -> None:
        self.catch_up()
        while self.process_next_signal():
            pass

    def _guarded(self, target: Callable[[], None]) -> Callable[[], None]:
        def run():
            try:
                target()
            except Exception as e:
                logger.exception(f"{threading.current_thread().name} failed: {e}")
                self.shutdown.kill(e)
        return run

    def start_async(self) -> None:
        """
        Start the watcher threads and return immediately.

        Raises:
            WatcherAlreadyRunningError: If already running
            DirectoryNotFoundError: If the journal directory is missing
        """
        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Journal watcher is already running")
            self._running = True

        try:
            self.setup_initial_journal()
        except SetupError:
            with self._lock:
                self._running = False
            raise

        self._threads = [
            threading.Thread(target=self._guarded(self._watcher.run), name="DirectoryWatcher"),
            threading.Thread(target=self._guarded(self._route_loop), name="EventRouter"),
            threading.Thread(target=self._guarded(self._tail_loop), name="JournalTailer"),
        ]
        for thread in self._threads:
            thread.daemon = True
            thread.start()

    def start(self) -> None:
        """
        Start the watcher and block until shutdown.

        Raises:
            WatcherAlreadyRunningError: If already running
            DirectoryNotFoundError: If the journal directory is missing
        """
        self.start_async()
        try:
            self.shutdown.wait()
        except KeyboardInterrupt:
            self.shutdown.kill(JournalWatchError("interrupted"))
        finally:
            self._join()

    def stop(self, cause: Optional[BaseException] = None) -> None:
        """
        Stop the watcher and wait for its threads.

        Args:
            cause: Reason recorded on the shutdown
        """
        self.shutdown.kill(cause or JournalWatchError("journal watcher stopped"))
        self._join()

    def _join(self) -> None:
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current and thread.is_alive():
                thread.join(timeout=5.0)
        with self._lock:
            self._running = False

    def iter_records(self) -> Iterator[Record]:
        """
        Iterate over decoded records until shutdown.

        Yields:
            Records in detection order
        """
        while True:
            try:
                yield self.records.dequeue(self.shutdown)
            except (ShutdownError, QueueClosedError):
                return

    def close(self) -> None:
        """Stop the watcher and release all resources."""
        self.stop()
        self._watcher.close()
        if self._tail is not None:
            self._tail.close()
            self._tail = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
