"""Environment-driven timing and capture configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from webreplay import constants


@dataclass(frozen=True)
class PlaybackTiming:
    probe_interval_seconds: float
    ready_timeout_seconds: float
    dispatch_timeout_seconds: float
    max_attempts: int
    retry_backoff_seconds: float
    settle_seconds: float
    post_load_settle_seconds: float

    @property
    def dispatch_timeout_ms(self) -> int:
        return int(self.dispatch_timeout_seconds * 1000)


@dataclass(frozen=True)
class CaptureConfig:
    scroll_threshold_px: int
    scroll_debounce_ms: int


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw.strip() else float(default)
    except ValueError:
        return float(default)


def load_playback_timing() -> PlaybackTiming:
    probe_interval_ms = _env_float("WEBREPLAY_PROBE_INTERVAL_MS", constants.PROBE_INTERVAL_MS)
    ready_timeout = _env_float("WEBREPLAY_READY_TIMEOUT_SECONDS", constants.READY_TIMEOUT_SECONDS)
    dispatch_timeout = _env_float(
        "WEBREPLAY_DISPATCH_TIMEOUT_SECONDS", constants.DISPATCH_TIMEOUT_SECONDS
    )
    max_attempts = int(_env_float("WEBREPLAY_MAX_ATTEMPTS", constants.MAX_ATTEMPTS))
    backoff = _env_float("WEBREPLAY_RETRY_BACKOFF_SECONDS", constants.RETRY_BACKOFF_SECONDS)
    settle_ms = _env_float("WEBREPLAY_SETTLE_MS", constants.SETTLE_MS)
    post_load_ms = _env_float("WEBREPLAY_POST_LOAD_SETTLE_MS", constants.POST_LOAD_SETTLE_MS)
    return PlaybackTiming(
        probe_interval_seconds=max(10.0, min(2000.0, probe_interval_ms)) / 1000.0,
        ready_timeout_seconds=max(0.1, min(120.0, ready_timeout)),
        dispatch_timeout_seconds=max(1.0, min(600.0, dispatch_timeout)),
        max_attempts=max(1, min(10, max_attempts)),
        retry_backoff_seconds=max(0.0, min(30.0, backoff)),
        settle_seconds=max(0.0, min(10000.0, settle_ms)) / 1000.0,
        post_load_settle_seconds=max(0.0, min(30000.0, post_load_ms)) / 1000.0,
    )


def load_capture_config() -> CaptureConfig:
    threshold = int(_env_float("WEBREPLAY_SCROLL_THRESHOLD_PX", constants.SCROLL_THRESHOLD_PX))
    debounce = int(_env_float("WEBREPLAY_SCROLL_DEBOUNCE_MS", constants.SCROLL_DEBOUNCE_MS))
    return CaptureConfig(
        scroll_threshold_px=max(0, threshold),
        scroll_debounce_ms=max(0, min(5000, debounce)),
    )


def default_store_path() -> Path:
    raw = os.getenv("WEBREPLAY_STORE_PATH", "").strip()
    return Path(raw) if raw else Path("runs") / "store.json"
