"""Tests for clocks, the scheduler and the event bus."""

import pytest

from player_economy.events import ALL_EVENTS, EventBus
from player_economy.scheduler import ManualClock, Scheduler


class TestManualClock:
    def test_advance(self):
        clock = ManualClock(100)
        assert clock.advance(50) == 150
        assert clock.now_ms() == 150

    def test_cannot_go_backwards(self):
        clock = ManualClock(100)
        with pytest.raises(ValueError):
            clock.advance(-1)
        with pytest.raises(ValueError):
            clock.set(99)


class TestScheduler:
    def setup_method(self):
        self.clock = ManualClock()
        self.scheduler = Scheduler(self.clock)
        self.calls = []

    def record(self, *args):
        self.calls.append(args)

    def test_one_shot_fires_once(self):
        self.scheduler.call_later(1000, "t", self.record, "a")
        assert self.scheduler.run_due(999) == 0
        assert self.scheduler.run_due(1000) == 1
        assert self.scheduler.run_due(5000) == 0
        assert self.calls == [("a",)]
        assert len(self.scheduler) == 0

    def test_order_by_due_time_then_insertion(self):
        self.scheduler.call_later(200, "t", self.record, "late")
        self.scheduler.call_later(100, "t", self.record, "first")
        self.scheduler.call_later(100, "t", self.record, "second")
        self.scheduler.run_due(1000)
        assert self.calls == [("first",), ("second",), ("late",)]

    def test_cancel(self):
        task_id = self.scheduler.call_later(100, "t", self.record)
        assert self.scheduler.cancel(task_id)
        assert not self.scheduler.cancel(task_id)
        assert self.scheduler.run_due(1000) == 0

    def test_recurring_fires_once_per_interval(self):
        task_id = self.scheduler.call_every(100, "tick", self.record)
        assert self.scheduler.run_due(350) == 3
        assert len(self.scheduler) == 1
        assert self.scheduler.pending()[0].due_ms == 400
        assert self.scheduler.cancel(task_id)
        assert len(self.scheduler) == 0

    def test_uses_clock_by_default(self):
        self.scheduler.call_later(10, "t", self.record)
        self.clock.advance(10)
        assert self.scheduler.run_due() == 1

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            self.scheduler.call_every(0, "t", self.record)


class TestEventBus:
    def setup_method(self):
        self.clock = ManualClock(42)
        self.bus = EventBus(self.clock, history_size=3)
        self.seen = []

    def test_publish_to_named_and_wildcard(self):
        self.bus.subscribe("trade.completed", self.seen.append)
        self.bus.subscribe(ALL_EVENTS, self.seen.append)
        announcement = self.bus.publish("trade.completed", {"x": 1})
        assert self.seen == [announcement, announcement]
        assert announcement.timestamp == 42
        assert announcement.payload == {"x": 1}

    def test_failing_handler_does_not_stop_others(self):
        def broken(_):
            raise RuntimeError("boom")

        self.bus.subscribe("a", broken)
        self.bus.subscribe("a", self.seen.append)
        announcement = self.bus.publish("a")
        assert len(self.seen) == 1
        assert announcement.name == "a"
        assert self.bus.history("a") == [announcement]

    def test_unsubscribe(self):
        self.bus.subscribe("a", self.seen.append)
        assert self.bus.unsubscribe("a", self.seen.append)
        assert not self.bus.unsubscribe("a", self.seen.append)
        self.bus.publish("a")
        assert self.seen == []

    def test_history_is_bounded_and_ordered(self):
        for name in ("a", "b", "a", "c"):
            self.bus.publish(name)
        history = self.bus.history()
        assert [a.name for a in history] == ["b", "a", "c"]
        assert [a.seq for a in history] == [2, 3, 4]
        assert len(self.bus.history("a")) == 1

    def test_subscribe_requires_callable(self):
        with pytest.raises(TypeError):
            self.bus.subscribe("a", "not callable")
