"""
Tests for the cooperative timer queue.
"""

import pytest

from classroom_screen.scheduler import Scheduler


class TestScheduler:

    def setup_method(self):
        self.scheduler = Scheduler()
        self.calls = []

    def test_call_later_runs_in_due_order(self):
        self.scheduler.call_later(2.0, self.calls.append, "b")
        self.scheduler.call_later(1.0, self.calls.append, "a")
        self.scheduler.call_later(3.0, self.calls.append, "c")

        self.scheduler.advance(2.5)
        assert self.calls == ["a", "b"]
        self.scheduler.advance(1.0)
        assert self.calls == ["a", "b", "c"]

    def test_call_soon_runs_on_next_turn(self):
        self.scheduler.call_soon(self.calls.append, "now")
        assert self.calls == []
        self.scheduler.advance(0)
        assert self.calls == ["now"]

    def test_same_due_time_keeps_fifo_order(self):
        for name in ("first", "second", "third"):
            self.scheduler.call_later(1.0, self.calls.append, name)
        self.scheduler.advance(1.0)
        assert self.calls == ["first", "second", "third"]

    def test_cancelled_handle_never_runs(self):
        handle = self.scheduler.call_later(1.0, self.calls.append, "x")
        handle.cancel()
        handle.cancel()
        self.scheduler.advance(5.0)
        assert self.calls == []
        assert self.scheduler.pending == 0

    def test_call_every_is_periodic_without_drift(self):
        handle = self.scheduler.call_every(0.5, lambda: self.calls.append(self.scheduler.time()))
        self.scheduler.advance(2.0)
        assert self.calls == [0.5, 1.0, 1.5, 2.0]

        handle.cancel()
        self.scheduler.advance(2.0)
        assert len(self.calls) == 4

    def test_periodic_callback_can_cancel_itself(self):
        holder = {}

        def tick():
            self.calls.append("tick")
            if len(self.calls) == 3:
                holder["handle"].cancel()

        holder["handle"] = self.scheduler.call_every(1.0, tick)
        self.scheduler.advance(10.0)
        assert self.calls == ["tick"] * 3

    def test_call_every_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            self.scheduler.call_every(0, self.calls.append)

    def test_callback_exception_is_logged_not_raised(self, caplog):
        def boom():
            raise RuntimeError("kaboom")

        self.scheduler.call_later(1.0, boom)
        self.scheduler.call_later(2.0, self.calls.append, "after")
        self.scheduler.advance(3.0)

        assert self.calls == ["after"]
        assert "failed" in caplog.text

    def test_callbacks_scheduled_during_run_see_virtual_time(self):
        def first():
            self.scheduler.call_later(1.0, self.calls.append, self.scheduler.time())

        self.scheduler.call_later(1.0, first)
        self.scheduler.advance(1.0)
        assert self.calls == []
        self.scheduler.advance(1.0)
        assert self.calls == [1.0]

    def test_poll_uses_wall_clock(self):
        now = [100.0]
        scheduler = Scheduler(clock=lambda: now[0])
        scheduler.call_later(1.0, self.calls.append, "due")

        assert scheduler.poll() == 0
        now[0] = 101.5
        assert scheduler.poll() == 1
        assert self.calls == ["due"]

    def test_cancel_all(self):
        self.scheduler.call_later(1.0, self.calls.append, "a")
        self.scheduler.call_every(1.0, self.calls.append, "b")
        self.scheduler.cancel_all()
        self.scheduler.advance(5.0)
        assert self.calls == []
        assert self.scheduler.pending == 0
