"""Process-wide shutdown signal shared by every journalwatch thread."""

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class Shutdown:
    """
    Single-fire broadcast used to stop all concurrent activity.

    The first call to kill() records its cause and sets the dying event;
    later calls are ignored. Blocking operations elsewhere subscribe with
    on_dying() so that a kill wakes them up immediately instead of letting
    them block forever.
    """

    def __init__(self):
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._cause: Optional[BaseException] = None
        self._callbacks: List[Callable[[], None]] = []

    def dying(self) -> threading.Event:
        """
        Get the event that becomes permanently set once kill() is called.

        Returns:
            The dying event
        """
        return self._done

    @property
    def is_dying(self) -> bool:
        """Check if shutdown has been requested."""
        return self._done.is_set()

    @property
    def cause(self) -> Optional[BaseException]:
        """The cause passed to the first kill() call."""
        with self._lock:
            return self._cause

    def kill(self, cause: Optional[BaseException] = None) -> None:
        """
        Request shutdown. Safe to call from any thread, any number of times.

        Args:
            cause: Why the process is shutting down
        """
        with self._lock:
            if self._done.is_set():
                logger.debug(f"shutdown: already dying, ignoring {cause!r}")
                return
            self._cause = cause
            self._done.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        logger.info(f"shutdown: {cause}")
        for callback in callbacks:
            callback()

    def on_dying(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback run once when shutdown is requested.

        If shutdown was already requested the callback runs immediately,
        on the calling thread.

        Args:
            callback: Function with no arguments

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._done.is_set():
                self._callbacks.append(callback)
                return lambda: self._unsubscribe(callback)

        callback()
        return lambda: None

    def _unsubscribe(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until shutdown is requested.

        Args:
            timeout: Optional maximum time to wait, in seconds

        Returns:
            True if shutdown was requested
        """
        return self._done.wait(timeout)
