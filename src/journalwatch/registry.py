"""Thread-safe registry of watched paths."""

import threading
from pathlib import Path
from typing import FrozenSet, Set, Tuple, Union


def canonical_path(path: Union[str, Path]) -> Path:
    """
    Canonicalize a path to its absolute, resolved form.

    Args:
        path: Path to canonicalize (need not exist)

    Returns:
        Absolute resolved path
    """
    return Path(path).expanduser().resolve()


class WatchRegistry:
    """
    Thread-safe set of paths currently under observation.

    Every path appears at most once. Mutation happens through add/remove,
    lookups through lookup/contains; all are short critical sections under
    one lock so they can be called from the watcher loop and from callers
    on other threads at the same time.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._paths: Set[Path] = set()
        self._lock = threading.Lock()

    def add(self, path: Path) -> bool:
        """
        Add a canonical path.

        Args:
            path: Canonical path to add

        Returns:
            True if the path was added, False if already present
        """
        with self._lock:
            if path in self._paths:
                return False
            self._paths.add(path)
            return True

    def remove(self, path: Path) -> bool:
        """
        Remove a canonical path.

        Args:
            path: Canonical path to remove

        Returns:
            True if the path was removed, False if it was not present
        """
        with self._lock:
            if path in self._paths:
                self._paths.discard(path)
                return True
            return False

    def lookup(self, path: Path) -> Tuple[bool, bool]:
        """
        Check membership of a path and of its parent directory together.

        Args:
            path: Canonical path of an event

        Returns:
            (exact, parent) - whether the path itself is registered and
            whether its parent directory is registered
        """
        with self._lock:
            return path in self._paths, path.parent in self._paths

    def get_paths(self) -> FrozenSet[Path]:
        """
        Get the current set of registered paths.

        Returns:
            Frozen set of paths
        """
        with self._lock:
            return frozenset(self._paths)

    def clear(self) -> int:
        """
        Remove all paths.

        Returns:
            Number of paths removed
        """
        with self._lock:
            count = len(self._paths)
            self._paths.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def __contains__(self, path: Path) -> bool:
        with self._lock:
            return path in self._paths
