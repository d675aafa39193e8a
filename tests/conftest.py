import threading

import pytest

from touchpointer.link.scheduler import SendScheduler
from touchpointer.protocol import PeerHandle


class FakeStream:
    """In-memory stream; records every write."""

    def __init__(self, fail_writes=False, block_writes=False):
        self.writes = []
        self.fail_writes = fail_writes
        self.closed = 0
        self.block = threading.Event()
        if not block_writes:
            self.block.set()
        self.write_started = threading.Event()

    def write(self, data):
        self.write_started.set()
        self.block.wait(timeout=2)
        if self.closed or self.fail_writes:
            raise OSError("broken pipe")
        self.writes.append(data)

    def close(self):
        self.closed += 1
        self.block.set()

    @property
    def lines(self):
        return [w.decode("ascii") for w in self.writes]


class FakeOpener:
    """Stream opener that hands out FakeStreams (or raises `error`)."""

    def __init__(self, error=None, **stream_kwargs):
        self.error = error
        self.stream_kwargs = stream_kwargs
        self.streams = []
        self.opened_for = []
        self.calls = []
        self.gate = None

    def open(self, peer):
        self.calls.append("open")
        self.opened_for.append(peer)
        if self.gate is not None:
            self.gate.wait(timeout=2)
        if self.error is not None:
            raise self.error
        stream = FakeStream(**self.stream_kwargs)
        self.streams.append(stream)
        return stream

    @property
    def stream(self):
        return self.streams[-1]


class FakeDiscovery:
    def __init__(self, log):
        self.log = log

    def cancel_discovery(self):
        self.log.append("cancel_discovery")


@pytest.fixture
def peer():
    return PeerHandle(address="AA:BB:CC:DD:EE:01", name="Desk-01")


@pytest.fixture
def opener():
    return FakeOpener()


@pytest.fixture
def scheduler():
    s = SendScheduler(min_move_interval_ms=30.0)
    s.start()
    yield s
    s.stop()
