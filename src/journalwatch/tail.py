"""Incremental line reader for append-only files."""

import io
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from .exceptions import TailError
from .queue import BoundedQueue
from .shutdown import Shutdown

logger = logging.getLogger(__name__)


class Tail:
    """
    Reads complete lines from a growing file, each exactly once.

    Every call to process_lines() continues where the previous one
    stopped. A trailing line without a newline is not delivered: the
    underlying stream is moved back to its first byte so the next pass
    reads it again, whole, once the writer has finished it.
    """

    def __init__(
        self,
        path: Union[str, Path],
        start_at_end: bool = False,
        offset: Optional[int] = None,
    ):
        """
        Open a file for tailing.

        Args:
            path: File to tail
            start_at_end: Skip existing content and deliver only new lines
            offset: Resume at this byte offset (overrides start_at_end)

        Raises:
            FileNotFoundError: If the file does not exist
            PermissionError: If the file cannot be read
        """
        self.path = Path(os.path.abspath(path))
        self._file: Optional[io.BufferedReader] = open(self.path, "rb")
        self._offset = 0

        try:
            if offset is not None:
                self._offset = self._file.seek(offset, os.SEEK_SET)
            elif start_at_end:
                self._offset = self._file.seek(0, os.SEEK_END)
        except OSError:
            self._file.close()
            raise

    @property
    def offset(self) -> int:
        """Byte offset just after the last line delivered."""
        return self._offset

    @property
    def closed(self) -> bool:
        """Check if the file handle has been released."""
        return self._file is None

    def _position(self) -> int:
        # BufferedReader.tell() is the raw stream position minus the bytes
        # read ahead into the buffer but not consumed yet.
        return self._file.tell()

    def _reset_at(self, offset: int) -> None:
        # Seeking a BufferedReader discards its buffer and moves the raw stream.
        self._file.seek(offset, os.SEEK_SET)

    def process_lines(self, handler: Callable[[bytes], None]) -> int:
        """
        Deliver every complete line not yet delivered.

        Lines are passed to the handler without their line terminator. An
        exception raised by the handler stops the pass and propagates;
        the line it was handling counts as delivered.

        Args:
            handler: Called once per complete line

        Returns:
            Number of lines delivered in this pass

        Raises:
            TailError: If reading fails or the tail is closed
        """
        if self._file is None:
            raise TailError(f"tail is closed: {self.path}")

        count = 0
        while True:
            try:
                offset = self._position()
                line = self._file.readline()
            except (OSError, ValueError) as e:
                self._recover()
                raise TailError(f"read failed on {self.path}: {e}") from e

            if not line:
                return count

            if not line.endswith(b"\n"):
                # Partial write; read it again once it is complete.
                try:
                    self._reset_at(offset)
                except OSError as e:
                    raise TailError(f"seek failed on {self.path}: {e}") from e
                logger.debug(f"Partial line at offset {offset} in {self.path.name}")
                return count

            self._offset = offset + len(line)
            count += 1
            handler(line.rstrip(b"\r\n"))

    def _recover(self) -> None:
        """Move the stream back to the last confirmed offset, if possible."""
        try:
            self._reset_at(self._offset)
        except (OSError, ValueError):
            pass

    def read_lines(self) -> List[bytes]:
        """
        Read all available complete lines and advance the tail.

        Returns:
            List of lines without line terminators
        """
        lines: List[bytes] = []
        self.process_lines(lines.append)
        return lines

    def send_lines(self, lines: BoundedQueue, shutdown: Shutdown) -> int:
        """
        Publish all available complete lines to a queue and advance the tail.

        Args:
            lines: Queue receiving the lines
            shutdown: Shutdown to race against when the queue is full

        Returns:
            Number of lines sent

        Raises:
            ShutdownError: If shutdown fires while blocked on a full queue
        """
        return self.process_lines(lambda line: lines.enqueue(line, shutdown))

    def close(self) -> None:
        """Release the file handle. Safe to call more than once."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"Tail({str(self.path)!r}, offset={self._offset})"
