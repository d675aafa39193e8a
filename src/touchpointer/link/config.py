from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime config (handheld side).

    - Loaded from environment variables
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TOUCHPOINTER_", extra="ignore")

    # Stream backend: RFCOMM radio link, or a ws:// URL for development.
    transport: Literal["rfcomm", "websocket"] = "rfcomm"
    rfcomm_channel: int = 1
    connect_timeout_s: float = 12.0

    # Move throttling (drop, never coalesce)
    move_min_interval_ms: float = 30.0
    max_pending_moves: int = 64

    # Gesture thresholds
    tap_slop_px: float = 16.0
    tap_max_duration_ms: float = 500.0
    double_tap_timeout_ms: float = 300.0
    double_tap_slop_px: float = 100.0
    poll_interval_s: float = 0.01

    # Linux input device, e.g. /dev/input/event2 (auto-picked if unset).
    input_device: str | None = None
    # Default to NOT grabbing so the local desktop still sees the touches.
    grab_device: bool = False

    reconnect_delay_s: float = 1.0

    # Debugging
    debug_log_msgs: bool = False
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
