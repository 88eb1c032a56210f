"""Tests for shutdown module."""

import pytest
import threading
import time

from journalwatch.shutdown import Shutdown


class TestShutdown:
    """Tests for Shutdown class."""

    def test_initial_state(self):
        shutdown = Shutdown()
        assert shutdown.is_dying is False
        assert shutdown.cause is None
        assert not shutdown.dying().is_set()

    def test_kill_sets_dying(self):
        shutdown = Shutdown()
        cause = RuntimeError("stop")
        
        shutdown.kill(cause)
        
        assert shutdown.is_dying is True
        assert shutdown.dying().is_set()
        assert shutdown.cause is cause

    def test_second_kill_is_noop(self):
        shutdown = Shutdown()
        first = RuntimeError("first")
        second = RuntimeError("second")
        
        shutdown.kill(first)
        shutdown.kill(second)
        
        assert shutdown.cause is first
        assert shutdown.is_dying is True

    def test_kill_without_cause(self):
        shutdown = Shutdown()
        shutdown.kill()
        assert shutdown.is_dying is True
        assert shutdown.cause is None

    def test_wait_returns_after_kill(self):
        shutdown = Shutdown()
        
        timer = threading.Timer(0.05, shutdown.kill)
        timer.start()
        
        assert shutdown.wait(timeout=2.0) is True
        timer.join()

    def test_wait_times_out(self):
        shutdown = Shutdown()
        assert shutdown.wait(timeout=0.01) is False

    def test_on_dying_runs_callback_once(self):
        shutdown = Shutdown()
        calls = []
        
        shutdown.on_dying(lambda: calls.append(1))
        shutdown.kill()
        shutdown.kill()
        
        assert calls == [1]

    def test_on_dying_after_kill_runs_immediately(self):
        shutdown = Shutdown()
        shutdown.kill()
        calls = []
        
        shutdown.on_dying(lambda: calls.append(1))
        
        assert calls == [1]

    def test_unsubscribe(self):
        shutdown = Shutdown()
        calls = []
        
        unsubscribe = shutdown.on_dying(lambda: calls.append(1))
        unsubscribe()
        shutdown.kill()
        
        assert calls == []

    def test_concurrent_kill(self):
        shutdown = Shutdown()
        calls = []
        shutdown.on_dying(lambda: calls.append(1))
        
        threads = [
            threading.Thread(target=shutdown.kill, args=(RuntimeError(str(i)),))
            for i in range(10)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        
        assert calls == [1]
        assert shutdown.cause is not None

    def test_kill_unblocks_waiters(self):
        shutdown = Shutdown()
        woke = []
        
        def waiter():
            shutdown.wait()
            woke.append(time.monotonic())
        
        threads = [threading.Thread(target=waiter) for _ in range(3)]
        for t in threads:
            t.start()
        
        time.sleep(0.05)
        shutdown.kill()
        
        for t in threads:
            t.join(timeout=2.0)
        
        assert len(woke) == 3
