"""Mutable state shared by one recording or playback run."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ReplaySession:
    recording: bool = False
    playing: bool = False
    playback_tab: str | None = None
    navigating: bool = False
    tab_aliases: dict[str, str] = field(default_factory=dict)

    def start_recording(self) -> None:
        if self.playing:
            raise RuntimeError("Cannot start recording while playback is running")
        self.recording = True

    def stop_recording(self) -> None:
        self.recording = False

    def begin_playback(self) -> None:
        if self.recording:
            raise RuntimeError("Cannot play actions while recording")
        self.playing = True
        self.playback_tab = None
        self.navigating = False
        self.tab_aliases.clear()

    def end_playback(self) -> None:
        self.playing = False
        self.playback_tab = None
        self.navigating = False
        self.tab_aliases.clear()

    def live_tab_for(self, recorded_ref: str) -> str:
        return self.tab_aliases.get(recorded_ref, recorded_ref)
