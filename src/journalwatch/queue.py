"""Bounded in-memory FIFO queue whose blocking operations race shutdown."""

import queue
import threading
import time
from collections import deque
from typing import Any, Deque, List, Optional

from .exceptions import QueueClosedError, ShutdownError
from .shutdown import Shutdown


class BoundedQueue:
    """
    Fixed-capacity FIFO queue connecting journalwatch threads.

    Features:
    - enqueue blocks while the queue is full (backpressure)
    - dequeue blocks while the queue is empty
    - both give up with ShutdownError as soon as the shutdown fires
    - non-blocking try_enqueue for signals that may be dropped
    - Thread-safe operations
    """

    def __init__(self, maxsize: int = 1):
        """
        Initialize the queue.

        Args:
            maxsize: Maximum number of items held at once
        """
        if maxsize < 1:
            raise ValueError(f"maxsize must be at least 1: {maxsize}")
        self.maxsize = maxsize
        self._items: Deque[Any] = deque()
        # Condition() uses an RLock, so Shutdown.on_dying() may call _wake()
        # while the waiter already holds the lock.
        self._cond = threading.Condition()
        self._closed = False

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def enqueue(self, item: Any, shutdown: Optional[Shutdown] = None) -> None:
        """
        Add an item, blocking while the queue is full.

        Args:
            item: Item to enqueue
            shutdown: Shutdown to race against while blocked

        Raises:
            ShutdownError: If shutdown fires before the item is accepted
            QueueClosedError: If the queue is closed
        """
        with self._cond:
            unsubscribe = shutdown.on_dying(self._wake) if shutdown else None
            try:
                while True:
                    if shutdown is not None and shutdown.is_dying:
                        raise ShutdownError("enqueue abandoned: shutdown in progress")
                    if self._closed:
                        raise QueueClosedError("Queue is closed")
                    if len(self._items) < self.maxsize:
                        break
                    self._cond.wait()

                self._items.append(item)
                self._cond.notify_all()
            finally:
                if unsubscribe:
                    unsubscribe()

    def try_enqueue(self, item: Any) -> bool:
        """
        Add an item only if there is room.

        Args:
            item: Item to enqueue

        Returns:
            True if the item was added, False if the queue was full
        """
        with self._cond:
            if self._closed:
                raise QueueClosedError("Queue is closed")
            if len(self._items) >= self.maxsize:
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def dequeue(
        self,
        shutdown: Optional[Shutdown] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Remove and return the oldest item, blocking while the queue is empty.

        Args:
            shutdown: Shutdown to race against while blocked
            timeout: Optional maximum time to wait, in seconds

        Returns:
            The dequeued item

        Raises:
            ShutdownError: If shutdown fires first
            QueueClosedError: If the queue is closed and empty
            queue.Empty: If the timeout expires
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            unsubscribe = shutdown.on_dying(self._wake) if shutdown else None
            try:
                while True:
                    if shutdown is not None and shutdown.is_dying:
                        raise ShutdownError("dequeue abandoned: shutdown in progress")
                    if self._items:
                        break
                    if self._closed:
                        raise QueueClosedError("Queue is closed")
                    if deadline is None:
                        self._cond.wait()
                    else:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            raise queue.Empty()
                        self._cond.wait(remaining)

                item = self._items.popleft()
                self._cond.notify_all()
                return item
            finally:
                if unsubscribe:
                    unsubscribe()

    def drain(self) -> List[Any]:
        """
        Remove and return everything currently queued, without blocking.

        Returns:
            List of items in FIFO order
        """
        with self._cond:
            items = list(self._items)
            self._items.clear()
            self._cond.notify_all()
            return items

    def size(self) -> int:
        """
        Get the number of queued items.

        Returns:
            Number of items
        """
        with self._cond:
            return len(self._items)

    def full(self) -> bool:
        """Check if the queue is at capacity."""
        with self._cond:
            return len(self._items) >= self.maxsize

    @property
    def closed(self) -> bool:
        """Check if the queue has been closed."""
        return self._closed

    def close(self) -> None:
        """
        Close the queue.

        Pending items can still be dequeued; blocked producers and, once
        the queue is empty, blocked consumers get QueueClosedError.
        """
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __len__(self) -> int:
        return self.size()
