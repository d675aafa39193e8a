from __future__ import annotations

import logging
import threading
import time

from touchpointer.input import GestureRecognizer, PointerSample
from touchpointer.link.scheduler import SendScheduler
from touchpointer.protocol import GestureEvent, encode

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000.0


class TouchPad:
    """
    Producer side of the pipeline: samples -> gestures -> commands -> scheduler.

    Recognition and encoding run synchronously on the caller's thread. A
    checker thread polls the recognizer so a pending tap is confirmed even when
    no further input arrives.
    """

    def __init__(
        self,
        recognizer: GestureRecognizer,
        scheduler: SendScheduler,
        *,
        poll_interval_s: float = 0.01,
    ) -> None:
        self.recognizer = recognizer
        self.scheduler = scheduler
        self.poll_interval_s = poll_interval_s
        self.state_lock = threading.Lock()
        self.running = False
        self._checker: threading.Thread | None = None

    def start(self) -> None:
        self.scheduler.start()
        self.running = True
        self._checker = threading.Thread(target=self._tap_checker, name="touchpointer-taps", daemon=True)
        self._checker.start()

    def stop(self) -> None:
        self.running = False
        if self._checker is not None:
            self._checker.join(timeout=1)
            self._checker = None

    def handle_sample(self, sample: PointerSample) -> list[GestureEvent]:
        with self.state_lock:
            events = self.recognizer.feed(sample)
            self._emit(events)
        return events

    def tick(self, now_ms: float | None = None) -> list[GestureEvent]:
        with self.state_lock:
            events = self.recognizer.poll(_now_ms() if now_ms is None else now_ms)
            self._emit(events)
        return events

    def _emit(self, events: list[GestureEvent]) -> None:
        for event in events:
            self.scheduler.submit(encode(event))

    def _tap_checker(self) -> None:
        while self.running:
            time.sleep(self.poll_interval_s)
            if self.recognizer.has_pending_tap:
                self.tick()
