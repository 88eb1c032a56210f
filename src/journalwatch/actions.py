"""
Responses to decoded records.

This is the surrounding application's side of the record queue: a
mapping from event names to external commands, a thread that runs those
commands one after another, and a handler that decides which records
trigger them.
"""

import json
import logging
import subprocess
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import JournalWatchError, QueueClosedError, ShutdownError
from .queue import BoundedQueue
from .records import Record
from .shutdown import Shutdown

logger = logging.getLogger(__name__)


class CommandMap:
    """Event name to command line (argv list) mapping."""

    def __init__(self, commands: Optional[Dict[str, List[str]]] = None):
        self._commands: Dict[str, List[str]] = {}
        for name, argv in (commands or {}).items():
            if not isinstance(argv, list) or not argv or not all(isinstance(a, str) for a in argv):
                raise ValueError(f"command for {name!r} must be a non-empty list of strings")
            self._commands[name] = list(argv)

    @classmethod
    def load(cls, path: Path) -> "CommandMap":
        """
        Load a mapping from a JSON file of the form {"FSDJump": ["cmd", "arg"]}.

        Raises:
            JournalWatchError: If the file cannot be read or is malformed
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise JournalWatchError(f"Cannot load command map {path}: {e}") from e
        if not isinstance(data, dict):
            raise JournalWatchError(f"Command map {path} must be a JSON object")
        try:
            return cls(data)
        except ValueError as e:
            raise JournalWatchError(f"Invalid command map {path}: {e}") from e

    def get(self, name: str) -> Optional[List[str]]:
        argv = self._commands.get(name)
        return list(argv) if argv else None

    def __contains__(self, name: str) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)


class CommandRunner:
    """Runs queued commands sequentially on its own thread."""

    def __init__(self, shutdown: Shutdown, queue_size: int = 10):
        self.shutdown = shutdown
        self._commands = BoundedQueue(queue_size)
        self._thread: Optional[threading.Thread] = None

    def submit(self, argv: List[str]) -> None:
        """
        Queue a command, blocking while the queue is full.

        Raises:
            ShutdownError: If shutdown fires while blocked
        """
        self._commands.enqueue(list(argv), self.shutdown)

    def run_command(self, argv: List[str]) -> bool:
        """
        Run one command and wait for it.

        Returns:
            True if the command exited successfully
        """
        try:
            subprocess.run(argv, check=True)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.error(f"Command {argv[0]} failed: {e}")
            return False
        return True

    def run(self) -> None:
        """Run queued commands until shutdown."""
        while True:
            try:
                argv = self._commands.dequeue(self.shutdown)
            except (ShutdownError, QueueClosedError):
                return
            self.run_command(argv)

    def start(self) -> None:
        """Start the runner thread."""
        self._thread = threading.Thread(target=self.run, name="CommandRunner", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = 5.0) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)


class RecordHandler:
    """
    Logs every record and triggers the mapped command for fresh ones.

    Records timestamped before the handler was created are backlog being
    replayed from the journal; they are logged but trigger nothing.
    """

    def __init__(
        self,
        commands: Optional[CommandMap] = None,
        runner: Optional[CommandRunner] = None,
        start_time: Optional[datetime] = None,
    ):
        self.commands = commands or CommandMap()
        self.runner = runner
        self.start_time = start_time or datetime.now(timezone.utc)

    def is_fresh(self, record: Record) -> bool:
        """Check whether a record happened after the handler started."""
        when = record.timestamp_datetime()
        if when is None:
            return False
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return when >= self.start_time

    def handle(self, record: Record) -> Optional[List[str]]:
        """
        Handle one record.

        Returns:
            The command submitted for the record, if any

        Raises:
            ShutdownError: If shutdown fires while submitting a command
        """
        name, timestamp = record.name_and_timestamp()
        logger.info(f"{name or type(record).__name__} @ {timestamp}")

        argv = self.commands.get(name)
        if argv is None or self.runner is None or not self.is_fresh(record):
            return None
        self.runner.submit(argv)
        return argv
