from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Protocol

from touchpointer.protocol import Command

logger = logging.getLogger(__name__)


class Writer(Protocol):
    def write(self, data: bytes) -> None: ...


def _now_ms() -> float:
    return time.time() * 1000.0


class SendScheduler:
    """
    Rate-limits commands and writes them from one persistent worker thread.

    - MOVE commands inside `min_move_interval_ms` of the last accepted MOVE are
      dropped (never coalesced into a cumulative delta)
    - clicks are never throttled
    - FIFO: commands reach the writer in submission order
    - while no output path is enabled, submissions are discarded silently
    """

    def __init__(
        self,
        *,
        min_move_interval_ms: float = 30.0,
        max_pending_moves: int = 64,
        clock: Callable[[], float] = _now_ms,
        on_write_failed: Callable[[Writer, OSError], None] | None = None,
        debug_log_msgs: bool = False,
    ) -> None:
        self.min_move_interval_ms = min_move_interval_ms
        self.max_pending_moves = max_pending_moves
        self.on_write_failed = on_write_failed
        self.debug_log_msgs = debug_log_msgs
        self._clock = clock

        self._lock = threading.Lock()
        self._queue: queue.Queue[tuple[int, Command] | None] = queue.Queue()
        self._target: Writer | None = None
        # bumped on every enable/disable; queued items from older generations are stale
        self._generation = 0
        self._last_move_ts: float | None = None
        self._pending_moves = 0
        self.dropped_moves = 0
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> SendScheduler:
        return cls(
            min_move_interval_ms=settings.move_min_interval_ms,
            max_pending_moves=settings.max_pending_moves,
            debug_log_msgs=settings.debug_log_msgs,
            **kwargs,
        )

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._target is not None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="touchpointer-send", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self.disable()
        if self._thread is None:
            return
        self._queue.put(None)
        self._thread.join(timeout=timeout)
        self._thread = None

    def join(self) -> None:
        """Block until every queued command has been written or discarded."""
        self._queue.join()

    def enable(self, target: Writer) -> None:
        with self._lock:
            self._generation += 1
            self._target = target
            self._last_move_ts = None

    def disable(self) -> None:
        with self._lock:
            self._generation += 1
            self._target = None
        self._discard_pending()

    def submit(self, command: Command) -> bool:
        """Queue a command; returns False if it was dropped or discarded."""
        with self._lock:
            if self._target is None:
                if self.debug_log_msgs:
                    logger.debug("no output path, discarding %s", command.text)
                return False
            if command.is_move:
                ts = command.ts if command.ts is not None else self._clock()
                if self._last_move_ts is not None and ts - self._last_move_ts < self.min_move_interval_ms:
                    self.dropped_moves += 1
                    return False
                if self._pending_moves >= self.max_pending_moves:
                    self.dropped_moves += 1
                    logger.debug("move backlog full, dropping %s", command.text)
                    return False
                self._last_move_ts = ts
                self._pending_moves += 1
            generation = self._generation
        self._queue.put((generation, command))
        return True

    def _discard_pending(self) -> None:
        stop = False
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is None:
                stop = True
            else:
                self._settle(item[1])
            self._queue.task_done()
        if stop:
            self._queue.put(None)

    def _settle(self, command: Command) -> None:
        if command.is_move:
            with self._lock:
                self._pending_moves -= 1

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                self._dispatch(*item)
            finally:
                self._queue.task_done()

    def _dispatch(self, generation: int, command: Command) -> None:
        self._settle(command)
        with self._lock:
            target = self._target if generation == self._generation else None
        if target is None:
            return

        try:
            target.write(command.to_bytes())
        except OSError as e:
            with self._lock:
                if generation != self._generation:
                    # disconnected meanwhile; the failure is expected
                    return
                self._generation += 1
                self._target = None
            logger.warning("write failed, output path disabled: %s", e)
            self._discard_pending()
            if self.on_write_failed is not None:
                try:
                    self.on_write_failed(target, e)
                except Exception:
                    logger.exception("write-failure handler raised")
            return

        if self.debug_log_msgs:
            logger.debug("sent %s", command.text)
