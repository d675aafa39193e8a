from .constants import (
    CLICK_LEFT,
    CLICK_RIGHT,
    DELIMITER,
    MOVE_PREFIX,
    SERIAL_PORT_SERVICE_UUID,
)
from .encoder import encode, is_valid_command
from .messages import Command, DoubleTap, Drag, GestureEvent, PeerHandle, Tap, TwoFingerTap

__all__ = [
    "CLICK_LEFT",
    "CLICK_RIGHT",
    "DELIMITER",
    "MOVE_PREFIX",
    "SERIAL_PORT_SERVICE_UUID",
    "Command",
    "DoubleTap",
    "Drag",
    "GestureEvent",
    "PeerHandle",
    "Tap",
    "TwoFingerTap",
    "encode",
    "is_valid_command",
]
