"""Directory watcher built on the watchdog library."""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from watchdog.observers import Observer
from watchdog.events import (
    FileSystemEventHandler,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
)

from .exceptions import (
    QueueClosedError,
    SetupError,
    ShutdownError,
    WatchError,
    WatcherAlreadyRunningError,
    WatcherNotRunningError,
)
from .models import FSEvent, Op, RawFSEvent
from .queue import BoundedQueue
from .registry import WatchRegistry, canonical_path
from .shutdown import Shutdown

logger = logging.getLogger(__name__)


_RAW_OPS = {
    "created": Op.CREATE,
    "modified": Op.WRITE,
    "deleted": Op.REMOVE,
    "moved": Op.RENAME,
}


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to RawFSEvent."""

    def __init__(self, callback: Callable[[RawFSEvent], None]):
        super().__init__()
        self.callback = callback

    def _emit(self, event_type: str, src_path: Path, dest_path: Optional[Path] = None, is_directory: bool = False):
        """Emit a RawFSEvent to the callback."""
        raw_event = RawFSEvent(
            event_type=event_type,
            src_path=src_path,
            dest_path=dest_path,
            is_directory=is_directory,
            timestamp=time.time(),
        )
        self.callback(raw_event)

    def on_created(self, event):
        is_dir = isinstance(event, DirCreatedEvent)
        self._emit("created", Path(event.src_path), is_directory=is_dir)

    def on_deleted(self, event):
        is_dir = isinstance(event, DirDeletedEvent)
        self._emit("deleted", Path(event.src_path), is_directory=is_dir)

    def on_modified(self, event):
        is_dir = isinstance(event, DirModifiedEvent)
        self._emit("modified", Path(event.src_path), is_directory=is_dir)

    def on_moved(self, event):
        is_dir = isinstance(event, DirMovedEvent)
        self._emit(
            "moved",
            Path(event.src_path),
            Path(event.dest_path),
            is_directory=is_dir,
        )


@dataclass
class _WatchRequest:
    """Add/remove request serviced by the watcher loop."""
    action: str
    path: Path
    reply: BoundedQueue


class DirectoryWatcher:
    """
    Watches files and directories and publishes normalized FSEvents.

    watchdog neither deduplicates repeated watches of the same path nor
    tells apart events for a registered path from events for a child of a
    registered directory. The registry restores both: a path is scheduled
    with the OS layer once, and events get Op.DIR_CHILD when only their
    parent directory is registered.

    run() is the event loop and is meant to run on its own thread. All
    OS-layer calls happen on that thread; add_watch/remove_watch post a
    request to it and wait for the answer.
    """

    def __init__(
        self,
        shutdown: Shutdown,
        event_queue_size: int = 1,
        inbox_size: int = 64,
        observer_factory: Callable[[], Any] = Observer,
    ):
        """
        Initialize the directory watcher.

        Args:
            shutdown: Shutdown shared with the rest of the process
            event_queue_size: Capacity of the normalized event queue
            inbox_size: Capacity of the loop's inbox (raw events and requests)
            observer_factory: Factory for the watchdog observer
        """
        self.shutdown = shutdown
        self.events = BoundedQueue(event_queue_size)
        self._inbox = BoundedQueue(inbox_size)
        self._registry = WatchRegistry()
        self._observer_factory = observer_factory
        self._handler = FSEventHandler(self._post_raw)
        self._watches: Dict[Path, Any] = {}  # confined to the loop thread
        self._lock = threading.Lock()
        self._running = False
        self._finished = False

    @property
    def registry(self) -> WatchRegistry:
        """The set of registered paths."""
        return self._registry

    @property
    def is_running(self) -> bool:
        """Check if the event loop is running."""
        return self._running

    def add_watch(self, path: Union[str, Path]) -> bool:
        """
        Register a path with the OS layer unless it is already registered.

        Args:
            path: File or directory to watch

        Returns:
            True if a new watch was registered, False if already watched

        Raises:
            WatchError: If the OS layer refuses the watch
            ShutdownError: If shutdown fires while waiting for the loop
            WatcherNotRunningError: If the event loop has already exited
        """
        path = canonical_path(path)
        if path in self._registry:
            return False
        return self._request("add", path)

    def remove_watch(self, path: Union[str, Path]) -> bool:
        """
        Unregister a path.

        Args:
            path: File or directory to stop watching

        Returns:
            True if the watch was removed, False if it was not registered
        """
        path = canonical_path(path)
        if path not in self._registry:
            return False
        return self._request("remove", path)

    def _request(self, action: str, path: Path) -> bool:
        if self._finished:
            raise WatcherNotRunningError("Directory watcher loop has exited")

        reply = BoundedQueue(1)
        try:
            self._inbox.enqueue(_WatchRequest(action, path, reply), self.shutdown)
        except QueueClosedError:
            raise WatcherNotRunningError("Directory watcher loop has exited")

        result = reply.dequeue(self.shutdown)
        if isinstance(result, BaseException):
            raise result
        return result

    def _post_raw(self, raw_event: RawFSEvent) -> None:
        """Called on watchdog's emitter thread for every raw event."""
        try:
            self._inbox.enqueue(raw_event, self.shutdown)
        except (ShutdownError, QueueClosedError):
            pass

    def run(self) -> None:
        """
        Run the event loop until shutdown, until close() is called, or until
        the observer thread ends on its own.

        If the OS layer cannot be started, the shutdown is killed with a
        SetupError so the rest of the process unwinds.

        Raises:
            WatcherAlreadyRunningError: If the loop is already running
        """
        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Directory watcher is already running")
            if self._finished:
                raise WatcherNotRunningError("Directory watcher has already finished")
            self._running = True

        observer = None
        try:
            observer = self._observer_factory()
            observer.start()
        except Exception as e:
            logger.error(f"Failed to start filesystem observer: {e}")
            self.shutdown.kill(SetupError(f"cannot start filesystem observer: {e}"))
            self._finish(None)
            return

        threading.Thread(
            target=self._watch_observer, args=(observer,), name="ObserverMonitor", daemon=True
        ).start()

        logger.debug("Directory watcher loop started")
        try:
            while True:
                try:
                    item = self._inbox.dequeue(self.shutdown)
                except (ShutdownError, QueueClosedError):
                    return

                if isinstance(item, _WatchRequest):
                    self._service(observer, item)
                    continue

                try:
                    events = self.normalize(item)
                except (OSError, RuntimeError) as e:
                    logger.warning(f"Filesystem watcher error for {item.src_path}: {e}")
                    continue

                for event in events:
                    try:
                        self.events.enqueue(event, self.shutdown)
                    except (ShutdownError, QueueClosedError):
                        return
        finally:
            self._finish(observer)

    def _finish(self, observer) -> None:
        with self._lock:
            self._running = False
            self._finished = True

        self._inbox.close()
        for item in self._inbox.drain():
            if isinstance(item, _WatchRequest):
                item.reply.try_enqueue(WatcherNotRunningError("Directory watcher loop has exited"))

        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)
        self._watches.clear()
        self.events.close()
        logger.debug("Directory watcher loop stopped")

    def _watch_observer(self, observer) -> None:
        """Close the inbox if the observer thread ends before the loop does."""
        observer.join()
        with self._lock:
            if self._finished:
                return
        logger.error("Filesystem observer stopped unexpectedly")
        self._inbox.close()

    def _service(self, observer, request: _WatchRequest) -> None:
        """Perform an add/remove request against the OS layer."""
        path = request.path

        if request.action == "add":
            # Re-checked here because two callers may race past add_watch's check.
            if path in self._registry:
                request.reply.try_enqueue(False)
                return
            try:
                watch = observer.schedule(self._handler, str(path), recursive=False)
            except OSError as e:
                request.reply.try_enqueue(WatchError(f"cannot watch {path}: {e}"))
                return
            self._watches[path] = watch
            self._registry.add(path)
            logger.info(f"Watching: {path}")
            request.reply.try_enqueue(True)

        elif request.action == "remove":
            if not self._registry.remove(path):
                request.reply.try_enqueue(False)
                return
            watch = self._watches.pop(path, None)
            if watch is not None:
                try:
                    observer.unschedule(watch)
                except (KeyError, OSError) as e:
                    logger.warning(f"Failed to unschedule {path}: {e}")
            logger.info(f"Stopped watching: {path}")
            request.reply.try_enqueue(True)

    def normalize(self, raw_event: RawFSEvent) -> List[FSEvent]:
        """
        Turn one raw event into normalized events.

        A move becomes RENAME on the source path and CREATE on the
        destination path.

        Args:
            raw_event: Raw event from the OS layer

        Returns:
            List of normalized events (empty for unknown event types)
        """
        op = _RAW_OPS.get(raw_event.event_type)
        if op is None:
            return []

        events = [self._classify(raw_event.src_path, op)]
        if raw_event.event_type == "moved" and raw_event.dest_path is not None:
            events.append(self._classify(raw_event.dest_path, Op.CREATE))
        return events

    def _classify(self, path: Path, op: Op) -> FSEvent:
        path = canonical_path(path)
        exact, parent = self._registry.lookup(path)
        if not exact and parent:
            op |= Op.DIR_CHILD
        return FSEvent(path=path, op=op)

    def close(self) -> None:
        """Close the watcher; a running loop exits after its current item."""
        self._inbox.close()
        self.events.close()
