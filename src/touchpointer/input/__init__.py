from .gestures import GestureRecognizer, GestureThresholds, Phase, PointerSample

__all__ = [
    "GestureRecognizer",
    "GestureThresholds",
    "Phase",
    "PointerSample",
]
