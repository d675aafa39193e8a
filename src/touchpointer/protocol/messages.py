from __future__ import annotations

from typing import Annotated, Literal, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field

from .constants import DELIMITER, ENCODING, MOVE_PREFIX

# Timestamps:
# - ts is a ms timestamp taken from the pointer sample that produced the value
#   (wall-clock ms as supplied by the input surface)


class _Value(BaseModel):
    model_config = ConfigDict(frozen=True)


class Tap(_Value):
    t: Literal["tap"] = "tap"
    ts: Annotated[float, Field(description="ms timestamp")] = 0.0


class DoubleTap(_Value):
    t: Literal["double_tap"] = "double_tap"
    ts: float = 0.0


class TwoFingerTap(_Value):
    t: Literal["two_finger_tap"] = "two_finger_tap"
    ts: float = 0.0


class Drag(_Value):
    t: Literal["drag"] = "drag"
    dx: int
    dy: int
    ts: float = 0.0


GestureEvent: TypeAlias = Annotated[
    Union[Tap, DoubleTap, TwoFingerTap, Drag],
    Field(discriminator="t"),
]


class Command(_Value):
    """One line of the wire protocol, without its delimiter."""

    text: str
    # None: stamp with the scheduler clock on submit
    ts: float | None = None

    @property
    def is_move(self) -> bool:
        return self.text.startswith(MOVE_PREFIX)

    def to_bytes(self) -> bytes:
        return (self.text + DELIMITER).encode(ENCODING)


class PeerHandle(_Value):
    """A previously bonded remote device."""

    address: str
    name: str = ""
    # Service class UUIDs advertised by the peer; empty when unknown.
    services: frozenset[str] = frozenset()

    @property
    def label(self) -> str:
        return self.name or self.address
