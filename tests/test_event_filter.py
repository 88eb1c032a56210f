"""Tests for event filter module."""

import pytest

from journalwatch.event_filter import EventFilter
from journalwatch.records import JournalEntry, Status


FSD_JUMP = b'{"timestamp":"2023-01-01T00:00:00Z","event":"FSDJump"}'
DOCKED = b'{"timestamp":"2023-01-01T00:00:00Z","event":"Docked"}'


class TestEventFilter:
    """Tests for EventFilter class."""

    def test_empty_filter_allows_everything(self):
        event_filter = EventFilter()
        
        assert event_filter.active is False
        assert event_filter.allows("FSDJump")
        assert event_filter.allows(None)

    def test_allows(self):
        event_filter = EventFilter({"Docked"})
        
        assert event_filter.active is True
        assert event_filter.allows("Docked")
        assert not event_filter.allows("FSDJump")

    def test_unknown_name_is_kept(self):
        event_filter = EventFilter({"Docked"})
        
        assert event_filter.allows("")
        assert event_filter.allows(None)

    def test_allows_record(self):
        event_filter = EventFilter(["Status"])
        
        assert event_filter.allows_record(Status(event="Status"))
        assert not event_filter.allows_record(JournalEntry(event="FSDJump"))

    def test_decode_line_no_filter(self):
        record = EventFilter().decode_line(FSD_JUMP)
        
        assert isinstance(record, JournalEntry)
        assert record.event == "FSDJump"

    def test_decode_line_kept(self):
        record = EventFilter({"Docked"}).decode_line(DOCKED)
        assert record.event == "Docked"

    def test_decode_line_dropped_by_sniff(self, monkeypatch):
        calls = []
        import journalwatch.event_filter as module
        original = module.parse_journal_line
        monkeypatch.setattr(module, "parse_journal_line", lambda line: calls.append(line) or original(line))
        
        assert EventFilter({"Docked"}).decode_line(FSD_JUMP) is None
        assert calls == []

    def test_decode_line_fallback_to_decoded_name(self):
        # Escaped value defeats the sniff; the decoded name decides.
        line = b'{"timestamp":"t","event":"Fly\\u0020By"}'
        
        assert EventFilter({"Docked"}).decode_line(line) is None
        assert EventFilter({"Fly By"}).decode_line(line).event == "Fly By"

    def test_decode_line_invalid_json(self):
        assert EventFilter().decode_line(b'{"event":"Docked"') is None
        assert EventFilter({"Docked"}).decode_line(b'{"event":"Docked"') is None

    def test_nested_event_key_does_not_pass_filter(self):
        line = b'{"timestamp":"t","Data":{"event":"Docked"},"event":"FSDJump"}'
        
        assert EventFilter({"Docked"}).decode_line(line) is None
        assert EventFilter({"FSDJump"}).decode_line(line).event == "FSDJump"

    def test_nested_event_key_does_not_drop_allowed_record(self):
        line = b'{"timestamp":"t","Data":{"event":"X"},"event":"Docked"}'
        
        assert EventFilter({"Docked"}).decode_line(line).event == "Docked"

    def test_decoded_name_is_always_checked(self, monkeypatch):
        import journalwatch.event_filter as module
        monkeypatch.setattr(module, "sniff_event_name", lambda line: "Docked")
        
        assert EventFilter({"Docked"}).decode_line(FSD_JUMP) is None

    def test_repr(self):
        assert repr(EventFilter({"b", "a"})) == "EventFilter(['a', 'b'])"
