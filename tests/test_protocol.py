"""
Tests for the command encoder and wire values.
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from touchpointer.protocol import (
    Command,
    DoubleTap,
    Drag,
    GestureEvent,
    PeerHandle,
    Tap,
    TwoFingerTap,
    encode,
    is_valid_command,
)


@pytest.mark.parametrize(
    "event, text",
    [
        (Tap(), "CLICK:LEFT"),
        (DoubleTap(), "CLICK:RIGHT"),
        (TwoFingerTap(), "CLICK:RIGHT"),
        (Drag(dx=2, dy=3), "MOVE:2,3"),
        (Drag(dx=-12, dy=0), "MOVE:-12,0"),
    ],
)
def test_encode_table(event, text):
    assert encode(event).text == text


def test_command_bytes_are_newline_terminated_ascii():
    assert encode(Tap()).to_bytes() == b"CLICK:LEFT\n"
    assert encode(Drag(dx=-5, dy=17)).to_bytes() == b"MOVE:-5,17\n"


def test_encode_carries_timestamp_and_move_flag():
    cmd = encode(Drag(dx=1, dy=1, ts=42.0))
    assert cmd.ts == 42.0
    assert cmd.is_move
    assert not encode(Tap(ts=1.0)).is_move


def test_encode_rejects_unknown_values():
    with pytest.raises(TypeError):
        encode("tap")


def test_values_are_immutable():
    cmd = Command(text="CLICK:LEFT")
    with pytest.raises(ValidationError):
        cmd.text = "CLICK:RIGHT"


def test_gesture_event_discriminator():
    adapter = TypeAdapter(GestureEvent)
    event = adapter.validate_python({"t": "drag", "dx": 4, "dy": -1, "ts": 5})
    assert event == Drag(dx=4, dy=-1, ts=5)
    assert isinstance(adapter.validate_python({"t": "two_finger_tap"}), TwoFingerTap)


def test_is_valid_command():
    assert is_valid_command("CLICK:LEFT")
    assert is_valid_command("MOVE:-3,10")
    assert not is_valid_command("MOVE:1.5,2")
    assert not is_valid_command("CLICK:MIDDLE")
    assert not is_valid_command("MOVE:1,2\n")


def test_peer_label_falls_back_to_address():
    assert PeerHandle(address="AA:BB:CC:DD:EE:FF").label == "AA:BB:CC:DD:EE:FF"
    assert PeerHandle(address="AA:BB:CC:DD:EE:FF", name="Desk-01").label == "Desk-01"
