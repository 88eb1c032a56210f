"""Tests for actions module."""

import json
import pytest
import sys
import threading
from datetime import datetime, timezone

from journalwatch.actions import CommandMap, CommandRunner, RecordHandler
from journalwatch.exceptions import JournalWatchError
from journalwatch.records import JournalEntry, Status
from journalwatch.shutdown import Shutdown


START = datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeRunner:
    def __init__(self):
        self.submitted = []

    def submit(self, argv):
        self.submitted.append(argv)


class TestCommandMap:
    """Tests for CommandMap class."""

    def test_get(self):
        commands = CommandMap({"FSDJump": ["notify-send", "jumped"]})
        
        assert commands.get("FSDJump") == ["notify-send", "jumped"]
        assert commands.get("Docked") is None
        assert "FSDJump" in commands
        assert len(commands) == 1

    def test_get_returns_copy(self):
        commands = CommandMap({"FSDJump": ["echo"]})
        commands.get("FSDJump").append("changed")
        
        assert commands.get("FSDJump") == ["echo"]

    @pytest.mark.parametrize("argv", ["echo hi", [], ["echo", 1]])
    def test_invalid_command(self, argv):
        with pytest.raises(ValueError):
            CommandMap({"FSDJump": argv})

    def test_load(self, tmp_path):
        path = tmp_path / "commands.json"
        path.write_text(json.dumps({"Docked": ["echo", "docked"]}))
        
        commands = CommandMap.load(path)
        
        assert commands.get("Docked") == ["echo", "docked"]

    def test_load_missing(self, tmp_path):
        with pytest.raises(JournalWatchError):
            CommandMap.load(tmp_path / "missing.json")

    def test_load_malformed(self, tmp_path):
        path = tmp_path / "commands.json"
        path.write_text("{not json")
        
        with pytest.raises(JournalWatchError):
            CommandMap.load(path)

    def test_load_not_an_object(self, tmp_path):
        path = tmp_path / "commands.json"
        path.write_text('[["echo"]]')
        
        with pytest.raises(JournalWatchError):
            CommandMap.load(path)

    def test_load_invalid_entry(self, tmp_path):
        path = tmp_path / "commands.json"
        path.write_text('{"Docked": "echo docked"}')
        
        with pytest.raises(JournalWatchError):
            CommandMap.load(path)


class TestRecordHandler:
    """Tests for RecordHandler class."""

    def test_fresh_record_triggers_command(self):
        runner = FakeRunner()
        handler = RecordHandler(CommandMap({"FSDJump": ["echo", "jump"]}), runner, START)
        
        argv = handler.handle(JournalEntry(timestamp="2023-01-01T12:00:01Z", event="FSDJump"))
        
        assert argv == ["echo", "jump"]
        assert runner.submitted == [["echo", "jump"]]

    def test_backlog_record_is_only_logged(self):
        runner = FakeRunner()
        handler = RecordHandler(CommandMap({"FSDJump": ["echo"]}), runner, START)
        
        assert handler.handle(JournalEntry(timestamp="2023-01-01T11:59:59Z", event="FSDJump")) is None
        assert runner.submitted == []

    def test_unmapped_event(self):
        runner = FakeRunner()
        handler = RecordHandler(CommandMap({"FSDJump": ["echo"]}), runner, START)
        
        assert handler.handle(JournalEntry(timestamp="2023-01-01T13:00:00Z", event="Docked")) is None
        assert runner.submitted == []

    def test_snapshot_record(self):
        runner = FakeRunner()
        handler = RecordHandler(CommandMap({"Status": ["echo", "status"]}), runner, START)
        
        handler.handle(Status(timestamp="2023-01-01T13:00:00Z", event="Status"))
        
        assert runner.submitted == [["echo", "status"]]

    def test_missing_timestamp_is_not_fresh(self):
        handler = RecordHandler(start_time=START)
        
        assert handler.is_fresh(JournalEntry(event="FSDJump")) is False
        assert handler.is_fresh(JournalEntry(timestamp="garbage", event="FSDJump")) is False

    def test_no_runner(self):
        handler = RecordHandler(CommandMap({"FSDJump": ["echo"]}), None, START)
        
        assert handler.handle(JournalEntry(timestamp="2023-01-01T13:00:00Z", event="FSDJump")) is None

    def test_logs_record(self, caplog):
        handler = RecordHandler(start_time=START)
        
        with caplog.at_level("INFO", logger="journalwatch.actions"):
            handler.handle(JournalEntry(timestamp="2023-01-01T13:00:00Z", event="FSDJump"))
        
        assert "FSDJump @ 2023-01-01T13:00:00Z" in caplog.text


class TestCommandRunner:
    """Tests for CommandRunner class."""

    def test_run_command(self):
        runner = CommandRunner(Shutdown())
        
        assert runner.run_command([sys.executable, "-c", "pass"]) is True
        assert runner.run_command([sys.executable, "-c", "raise SystemExit(3)"]) is False

    def test_run_missing_program(self):
        runner = CommandRunner(Shutdown())
        
        assert runner.run_command(["definitely-not-a-real-program-xyz"]) is False

    def test_runs_submitted_commands(self, tmp_path):
        shutdown = Shutdown()
        runner = CommandRunner(shutdown)
        marker = tmp_path / "ran"
        runner.start()
        
        runner.submit([sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"])
        
        for _ in range(100):
            if marker.exists():
                break
            threading.Event().wait(0.05)
        
        shutdown.kill()
        runner.join(timeout=2.0)
        
        assert marker.exists()
