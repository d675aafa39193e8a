from __future__ import annotations

import re

from .constants import CLICK_LEFT, CLICK_RIGHT, MOVE_PREFIX
from .messages import Command, DoubleTap, Drag, GestureEvent, Tap, TwoFingerTap


def encode(event: GestureEvent) -> Command:
    """Map a recognized gesture to its protocol command."""
    if isinstance(event, Tap):
        return Command(text=CLICK_LEFT, ts=event.ts)
    if isinstance(event, (DoubleTap, TwoFingerTap)):
        return Command(text=CLICK_RIGHT, ts=event.ts)
    if isinstance(event, Drag):
        return Command(text=f"{MOVE_PREFIX}{int(event.dx)},{int(event.dy)}", ts=event.ts)
    raise TypeError(f"unsupported gesture event: {event!r}")


_COMMAND_RE = re.compile(r"CLICK:(?:LEFT|RIGHT)|MOVE:-?\d+,-?\d+")


def is_valid_command(line: str) -> bool:
    """True if `line` (without delimiter) is a well-formed protocol command."""
    return bool(_COMMAND_RE.fullmatch(line))
