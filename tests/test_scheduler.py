"""
Tests for the Send Scheduler: throttling, ordering, failure handling.
"""

import math

import pytest

from conftest import FakeStream
from touchpointer.link.scheduler import SendScheduler
from touchpointer.protocol import Command, Drag, Tap, encode


def move_cmd(ts, dx=2, dy=3):
    return encode(Drag(dx=dx, dy=dy, ts=ts))


class TestThrottling:

    def test_drag_every_10ms_for_100ms(self, scheduler):
        stream = FakeStream()
        scheduler.enable(stream)
        accepted = [scheduler.submit(move_cmd(t)) for t in range(0, 100, 10)]
        scheduler.join()

        assert accepted == [True, False, False, True, False, False, True, False, False, True]
        assert stream.lines == ["MOVE:2,3\n"] * 4
        assert scheduler.dropped_moves == 6

    @pytest.mark.parametrize("interval_ms, duration_ms", [(1, 300), (5, 95), (10, 240)])
    def test_transmitted_count_is_independent_of_sample_rate(self, scheduler, interval_ms, duration_ms):
        stream = FakeStream()
        scheduler.enable(stream)
        for t in range(0, duration_ms, interval_ms):
            scheduler.submit(move_cmd(t))
        scheduler.join()
        assert len(stream.lines) == math.ceil(duration_ms / 30)

    def test_dropped_deltas_are_not_carried(self, scheduler):
        stream = FakeStream()
        scheduler.enable(stream)
        for t, dx in [(0, 1), (10, 5), (20, 7), (30, 2)]:
            scheduler.submit(move_cmd(t, dx=dx, dy=0))
        scheduler.join()
        assert stream.lines == ["MOVE:1,0\n", "MOVE:2,0\n"]

    def test_clicks_bypass_throttling(self, scheduler):
        stream = FakeStream()
        scheduler.enable(stream)
        scheduler.submit(move_cmd(0))
        scheduler.submit(encode(Tap(ts=1)))
        scheduler.submit(Command(text="CLICK:RIGHT", ts=2))
        scheduler.submit(encode(Tap(ts=3)))
        scheduler.submit(move_cmd(4))
        scheduler.join()
        assert stream.lines == ["MOVE:2,3\n", "CLICK:LEFT\n", "CLICK:RIGHT\n", "CLICK:LEFT\n"]

    def test_unstamped_moves_use_the_clock(self):
        now = [1000.0]
        s = SendScheduler(min_move_interval_ms=30.0, clock=lambda: now[0])
        s.enable(FakeStream())
        assert s.submit(Command(text="MOVE:1,1"))
        now[0] += 29
        assert not s.submit(Command(text="MOVE:1,1"))
        now[0] += 1
        assert s.submit(Command(text="MOVE:1,1"))

    def test_move_backlog_is_bounded(self):
        s = SendScheduler(min_move_interval_ms=0.0, max_pending_moves=3)
        stream = FakeStream()
        s.enable(stream)  # worker not started: everything stays queued
        results = [s.submit(move_cmd(t)) for t in range(5)]
        assert results == [True, True, True, False, False]
        assert s.submit(encode(Tap()))
        s.start()
        s.join()
        assert len(stream.lines) == 4
        s.stop()


class TestDispatch:

    def test_fifo_order(self, scheduler):
        stream = FakeStream()
        scheduler.enable(stream)
        for text in ("CLICK:LEFT", "MOVE:1,1", "CLICK:RIGHT"):
            scheduler.submit(Command(text=text, ts=0))
        scheduler.join()
        assert stream.lines == ["CLICK:LEFT\n", "MOVE:1,1\n", "CLICK:RIGHT\n"]

    def test_disabled_scheduler_discards(self, scheduler):
        assert not scheduler.enabled
        assert not scheduler.submit(encode(Tap()))
        scheduler.join()

    def test_disable_discards_pending(self):
        s = SendScheduler()
        stream = FakeStream()
        s.enable(stream)
        s.submit(encode(Tap()))
        s.submit(move_cmd(0))
        s.disable()
        s.start()
        s.join()
        assert stream.writes == []
        s.stop()

    def test_write_failure_disables_output(self, scheduler):
        failures = []
        scheduler.on_write_failed = lambda target, exc: failures.append((target, exc))
        stream = FakeStream(fail_writes=True)
        scheduler.enable(stream)
        assert scheduler.submit(encode(Tap()))
        scheduler.join()

        [(target, exc)] = failures
        assert target is stream
        assert isinstance(exc, OSError)
        assert not scheduler.enabled
        assert not scheduler.submit(encode(Tap()))

    def test_failure_handler_errors_do_not_kill_worker(self, scheduler):
        def boom(target, exc):
            raise ValueError("observer bug")

        scheduler.on_write_failed = boom
        scheduler.enable(FakeStream(fail_writes=True))
        scheduler.submit(encode(Tap()))
        scheduler.join()

        stream = FakeStream()
        scheduler.enable(stream)
        scheduler.submit(encode(Tap()))
        scheduler.join()
        assert stream.lines == ["CLICK:LEFT\n"]

    def test_enable_resets_throttle_window(self, scheduler):
        first = FakeStream()
        scheduler.enable(first)
        scheduler.submit(move_cmd(0))
        second = FakeStream()
        scheduler.enable(second)
        scheduler.submit(move_cmd(5))
        scheduler.join()
        assert second.lines == ["MOVE:2,3\n"]
