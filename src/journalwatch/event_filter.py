"""Event-name allow-list applied to journal lines and snapshot records."""

import logging
from typing import Iterable, Optional

from .exceptions import DecodeError
from .records import Record, parse_journal_line, sniff_event_name

logger = logging.getLogger(__name__)


class EventFilter:
    """
    Keeps only records whose event name is in the allow-list.

    An empty allow-list keeps everything. For journal lines the event name
    is first sniffed from the raw bytes so unwanted lines are dropped
    without decoding; the decoded record is always checked as well.
    Records without an event name are always kept.
    """

    def __init__(self, allowed: Optional[Iterable[str]] = None):
        """
        Initialize the filter.

        Args:
            allowed: Event names to keep; empty or None keeps everything
        """
        self.allowed = frozenset(allowed or ())

    @property
    def active(self) -> bool:
        """Whether the filter drops anything at all."""
        return bool(self.allowed)

    def allows(self, name: Optional[str]) -> bool:
        """
        Check an event name against the allow-list.

        Args:
            name: Event name; empty or None counts as unknown

        Returns:
            True if a record with this name should be kept
        """
        if not self.allowed or not name:
            return True
        return name in self.allowed

    def allows_record(self, record: Record) -> bool:
        """Check a decoded record against the allow-list."""
        name, _ = record.name_and_timestamp()
        return self.allows(name)

    def decode_line(self, line: bytes) -> Optional[Record]:
        """
        Filter and decode one journal line.

        Args:
            line: Raw journal line

        Returns:
            The decoded record, or None if the line was filtered out or
            could not be decoded
        """
        if self.active and not self.allows(sniff_event_name(line)):
            return None

        try:
            record = parse_journal_line(line)
        except DecodeError as e:
            logger.debug(f"Dropping undecodable journal line: {e}")
            return None

        if not self.allows_record(record):
            return None
        return record

    def __repr__(self) -> str:
        return f"EventFilter({sorted(self.allowed)!r})"
