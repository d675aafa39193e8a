import pytest
from pydantic import ValidationError

from touchpointer.link.config import Settings, get_settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.transport == "rfcomm"
    assert s.move_min_interval_ms == 30.0
    assert s.grab_device is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TOUCHPOINTER_TRANSPORT", "websocket")
    monkeypatch.setenv("TOUCHPOINTER_MOVE_MIN_INTERVAL_MS", "45")
    monkeypatch.setenv("TOUCHPOINTER_INPUT_DEVICE", "/dev/input/event3")
    s = Settings(_env_file=None)
    assert s.transport == "websocket"
    assert s.move_min_interval_ms == 45.0
    assert s.input_device == "/dev/input/event3"


def test_unknown_transport_is_rejected(monkeypatch):
    monkeypatch.setenv("TOUCHPOINTER_TRANSPORT", "usb")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_get_settings_is_cached():
    get_settings.cache_clear()
    assert get_settings() is get_settings()
    get_settings.cache_clear()
