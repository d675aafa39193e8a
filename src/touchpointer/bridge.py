from __future__ import annotations

"""
Linux touchscreen input surface.

- Reads /dev/input/event* directly (no evdev dependency)
- Decodes the multitouch slot protocol into PointerSamples for a TouchPad

Positions stay in device units; tune the tap/drag thresholds to the panel.
"""

import errno
import glob
import logging
import os
import struct
import threading
import time
from dataclasses import dataclass
from typing import Callable

from touchpointer.input import Phase, PointerSample

logger = logging.getLogger(__name__)

# Linux input constants (subset)
EV_SYN = 0x00
EV_ABS = 0x03
SYN_REPORT = 0x00
ABS_MT_SLOT = 0x2F
ABS_MT_POSITION_X = 0x35
ABS_MT_POSITION_Y = 0x36
ABS_MT_TRACKING_ID = 0x39

# struct input_event: timeval (2 native longs) + H H i
EVENT_FMT = "llHHi"
EVENT_SIZE = struct.calcsize(EVENT_FMT)


@dataclass
class _Slot:
    tracking_id: int = -1
    x: int = 0
    y: int = 0
    order: int = 0


class MultitouchDecoder:
    """
    Turns (type, code, value) events into PointerSamples at each SYN_REPORT.

    - contact count rises -> DOWN with the new count
    - contact count falls -> one UP per lifted contact, each carrying the count
      before that lift (so the last UP always has contacts=1)
    - otherwise a position change of the primary contact -> MOVE
    The primary contact is the earliest one still touching.
    """

    def __init__(self) -> None:
        self.slots: dict[int, _Slot] = {}
        self.current_slot = 0
        self._contacts = 0
        self._seq = 0
        self._last_xy: tuple[int, int] | None = None

    def _slot(self) -> _Slot:
        return self.slots.setdefault(self.current_slot, _Slot())

    def feed(self, etype: int, code: int, value: int, ts_ms: float) -> list[PointerSample]:
        if etype == EV_ABS:
            if code == ABS_MT_SLOT:
                self.current_slot = value
            elif code == ABS_MT_TRACKING_ID:
                slot = self._slot()
                if value >= 0 and slot.tracking_id < 0:
                    self._seq += 1
                    slot.order = self._seq
                slot.tracking_id = value
            elif code == ABS_MT_POSITION_X:
                self._slot().x = value
            elif code == ABS_MT_POSITION_Y:
                self._slot().y = value
            return []
        if etype == EV_SYN and code == SYN_REPORT:
            return self._frame(ts_ms)
        return []

    def _frame(self, ts_ms: float) -> list[PointerSample]:
        active = sorted((s for s in self.slots.values() if s.tracking_id >= 0), key=lambda s: s.order)
        count = len(active)
        prev = self._contacts
        self._contacts = count

        if active:
            xy = (active[0].x, active[0].y)
        elif self._last_xy is not None:
            xy = self._last_xy
        else:
            return []

        if count > prev:
            phases = [(Phase.DOWN, count)]
        elif count < prev:
            phases = [(Phase.UP, n) for n in range(prev, count, -1)]
        elif count == 0 or xy == self._last_xy:
            return []
        else:
            phases = [(Phase.MOVE, count)]

        self._last_xy = xy
        x, y = float(xy[0]), float(xy[1])
        return [PointerSample(ts=ts_ms, x=x, y=y, contacts=n, phase=phase) for phase, n in phases]


def pick_input_device_path(devices_text: str) -> str | None:
    """
    Best-effort heuristic over /proc/bus/input/devices: prefer an event
    handler whose name looks like a touchscreen.
    """
    best: tuple[int, str] | None = None
    for block in devices_text.split("\n\n"):
        name = ""
        handlers: list[str] = []
        for line in block.splitlines():
            if line.startswith("N: Name="):
                name = line.split("=", 1)[1].strip().strip('"').lower()
            if line.startswith("H: Handlers="):
                handlers = line.split("=", 1)[1].strip().split()
        event = next((h for h in handlers if h.startswith("event")), None)
        if not event:
            continue
        score = 0
        if "touchscreen" in name:
            score += 10
        elif "touch" in name:
            score += 5
        if any(k in name for k in ("stylus", "pen", "mouse", "keyboard")):
            score -= 5
        path = f"/dev/input/{event}"
        if best is None or score > best[0]:
            best = (score, path)
    return best[1] if best is not None else None


def resolve_input_device(configured: str | None) -> str:
    if configured:
        return configured
    try:
        with open("/proc/bus/input/devices", "r", encoding="utf-8", errors="replace") as f:
            text = f.read()
    except OSError:
        text = ""
    path = pick_input_device_path(text)
    if path is not None:
        return path
    candidates = sorted(glob.glob("/dev/input/event*"))
    if not candidates:
        raise RuntimeError("No /dev/input/event* devices found.")
    return candidates[0]


def _ioctl_iow(type_char: str, nr: int, size: int) -> int:
    # Linux ioctl encoding: dir(2) | size(14) | type(8) | nr(8)
    IOC_WRITE = 1
    return (IOC_WRITE << 30) | (size << 16) | (ord(type_char) << 8) | nr


def _evio_grab() -> int:
    # EVIOCGRAB = _IOW('E', 0x90, int)
    return _ioctl_iow("E", 0x90, struct.calcsize("i"))


class TouchscreenReader:
    """Blocking reader thread: decodes the device and hands samples to `on_sample`."""

    def __init__(self, path: str, on_sample: Callable[[PointerSample], object], *, grab: bool = False) -> None:
        self.path = path
        self.on_sample = on_sample
        self.grab = grab
        self.decoder = MultitouchDecoder()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        # set when the device could not be opened or read
        self.error: OSError | None = None

    def start(self) -> None:
        self._stop.clear()
        self.error = None
        self._thread = threading.Thread(target=self._read_loop, name="touchpointer-input", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1)
            self._thread = None

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _read_loop(self) -> None:
        try:
            self._read_events()
        except OSError as e:
            self.error = e
            logger.error("input device %s failed: %s", self.path, e)

    def _read_events(self) -> None:
        import fcntl

        fd = os.open(self.path, os.O_RDONLY)
        try:
            if self.grab:
                try:
                    fcntl.ioctl(fd, _evio_grab(), struct.pack("i", 1))
                except OSError as e:
                    logger.warning("could not grab %s: %s", self.path, e)

            # non-blocking so the thread notices stop()
            fl = fcntl.fcntl(fd, fcntl.F_GETFL)
            fcntl.fcntl(fd, fcntl.F_SETFL, fl | os.O_NONBLOCK)

            logger.info("reading touches from %s", self.path)
            buf = b""
            while not self._stop.is_set():
                try:
                    chunk = os.read(fd, 4096)
                except OSError as e:
                    if e.errno in (errno.EAGAIN, errno.EWOULDBLOCK):
                        time.sleep(0.001)
                        continue
                    raise
                if not chunk:
                    time.sleep(0.01)
                    continue
                buf += chunk
                while len(buf) >= EVENT_SIZE:
                    pkt, buf = buf[:EVENT_SIZE], buf[EVENT_SIZE:]
                    sec, usec, etype, ecode, evalue = struct.unpack(EVENT_FMT, pkt)
                    for sample in self.decoder.feed(etype, ecode, evalue, sec * 1000.0 + usec / 1000.0):
                        self.on_sample(sample)
        finally:
            os.close(fd)
