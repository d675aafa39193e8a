"""
Gesture recognition over raw pointer samples.

The recognizer is a plain state machine with no UI or clock dependency: time
only advances through sample timestamps and explicit `poll(now_ms)` calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from touchpointer.protocol import DoubleTap, Drag, GestureEvent, Tap, TwoFingerTap


class Phase(str, Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"


@dataclass(frozen=True)
class PointerSample:
    """
    One raw pointer report from the input surface.

    - **ts**: wall-clock ms, non-decreasing within a session
    - **x, y**: position of the primary contact in px
    - **contacts**: contacts on the surface; for UP this includes the lifted one
    """

    ts: float
    x: float
    y: float
    contacts: int = 1
    phase: Phase = Phase.MOVE


@dataclass
class GestureThresholds:
    tap_slop_px: float = 16.0
    tap_max_duration_ms: float = 500.0
    double_tap_timeout_ms: float = 300.0
    double_tap_slop_px: float = 100.0

    @classmethod
    def from_settings(cls, settings) -> GestureThresholds:
        return cls(
            tap_slop_px=settings.tap_slop_px,
            tap_max_duration_ms=settings.tap_max_duration_ms,
            double_tap_timeout_ms=settings.double_tap_timeout_ms,
            double_tap_slop_px=settings.double_tap_slop_px,
        )


class _Mode(Enum):
    IDLE = "idle"
    PRESSED = "pressed"
    DRAGGING = "dragging"
    # gesture already decided; ignore samples until the last contact lifts
    CONSUMED = "consumed"


@dataclass
class _PendingTap:
    x: float
    y: float
    up_ts: float


def _round(v: float) -> int:
    # half away from zero, symmetric for left/right and up/down motion
    return int(math.copysign(math.floor(abs(v) + 0.5), v))


def _dist(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(bx - ax, by - ay)


class GestureRecognizer:
    """Classifies taps, double taps, two-finger taps and drags."""

    def __init__(self, thresholds: GestureThresholds | None = None) -> None:
        self.thresholds = thresholds or GestureThresholds()
        self.reset()

    def reset(self) -> None:
        self._mode = _Mode.IDLE
        self._down: tuple[float, float, float] | None = None  # (x, y, ts)
        self._anchor: tuple[float, float] = (0.0, 0.0)
        self._pending: _PendingTap | None = None

    @property
    def has_pending_tap(self) -> bool:
        return self._pending is not None

    def poll(self, now_ms: float) -> list[GestureEvent]:
        """Confirm a pending tap once the double-tap window has passed."""
        p = self._pending
        if p is not None and now_ms - p.up_ts >= self.thresholds.double_tap_timeout_ms:
            self._pending = None
            return [Tap(ts=p.up_ts)]
        return []

    def feed(self, sample: PointerSample) -> list[GestureEvent]:
        out = self.poll(sample.ts)
        if sample.phase is Phase.DOWN:
            self._on_down(sample, out)
        elif sample.phase is Phase.MOVE:
            self._on_move(sample, out)
        else:
            self._on_up(sample, out)
        return out

    def _on_down(self, s: PointerSample, out: list[GestureEvent]) -> None:
        if s.contacts >= 2:
            if self._mode is not _Mode.CONSUMED:
                self._two_finger(s, out)
            return

        # a fresh single-contact session (any stale one lost its UP)
        p = self._pending
        if p is not None:
            self._pending = None
            if _dist(p.x, p.y, s.x, s.y) <= self.thresholds.double_tap_slop_px:
                self._mode = _Mode.CONSUMED
                out.append(DoubleTap(ts=s.ts))
                return
            out.append(Tap(ts=p.up_ts))

        self._mode = _Mode.PRESSED
        self._down = (s.x, s.y, s.ts)
        self._anchor = (s.x, s.y)

    def _on_move(self, s: PointerSample, out: list[GestureEvent]) -> None:
        if self._mode in (_Mode.IDLE, _Mode.CONSUMED):
            return
        if s.contacts >= 2:
            self._two_finger(s, out)
            return

        if self._mode is _Mode.PRESSED:
            dx, dy, _ts = self._down
            if _dist(dx, dy, s.x, s.y) <= self.thresholds.tap_slop_px:
                return
            self._mode = _Mode.DRAGGING

        ax, ay = self._anchor
        dx = _round(s.x - ax)
        dy = _round(s.y - ay)
        if dx == 0 and dy == 0:
            return
        # advance by the reported step so sub-pixel remainders carry over
        self._anchor = (ax + dx, ay + dy)
        out.append(Drag(dx=dx, dy=dy, ts=s.ts))

    def _on_up(self, s: PointerSample, out: list[GestureEvent]) -> None:
        if s.contacts >= 2:
            if self._mode in (_Mode.PRESSED, _Mode.DRAGGING):
                self._two_finger(s, out)
            return

        if self._mode is _Mode.PRESSED:
            x, y, ts = self._down
            th = self.thresholds
            if s.ts - ts <= th.tap_max_duration_ms and _dist(x, y, s.x, s.y) <= th.tap_slop_px:
                self._pending = _PendingTap(x=x, y=y, up_ts=s.ts)
        self._mode = _Mode.IDLE
        self._down = None

    def _two_finger(self, s: PointerSample, out: list[GestureEvent]) -> None:
        # a two-contact touch can never complete a double tap
        p = self._pending
        if p is not None:
            self._pending = None
            out.append(Tap(ts=p.up_ts))
        self._mode = _Mode.CONSUMED
        self._down = None
        out.append(TwoFingerTap(ts=s.ts))
