"""Sequential replay of recorded actions with readiness waits, timeouts and retries."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from webreplay.browser import urls_match
from webreplay.config import PlaybackTiming, load_playback_timing
from webreplay.constants import NAVIGATING_ACTION_KINDS
from webreplay.errors import (
    AgentUnavailableError,
    StepFailure,
    StoreAccessError,
    TabProvisioningError,
)
from webreplay.models import Action, TabCreateAction, TabFocusAction
from webreplay.session import ReplaySession


IDLE = "idle"
PROVISIONING = "provisioning"
AWAITING_AGENT_READY = "awaiting_agent_ready"
DISPATCHING = "dispatching"
RETRYING = "retrying"
ADVANCING = "advancing"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class StepOutcome:
    index: int
    kind: str
    status: str
    attempts: int
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "index": self.index,
            "kind": self.kind,
            "status": self.status,
            "attempts": self.attempts,
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class PlaybackResult:
    status: str
    message: str = ""
    total: int = 0
    steps: list[StepOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "complete"

    def failed_steps(self) -> list[StepOutcome]:
        return [step for step in self.steps if step.status != "success"]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status}
        if self.message:
            payload["message"] = self.message
        payload["total"] = self.total
        payload["failed"] = len(self.failed_steps())
        payload["steps"] = [step.to_dict() for step in self.steps]
        return payload


@dataclass(frozen=True)
class ProgressEvent:
    current: int
    total: int
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "playbackProgress",
            "current": self.current,
            "total": self.total,
            "percentage": self.percentage,
        }


def wait_for_agent(
    probe: Callable[[], bool],
    *,
    interval_seconds: float,
    timeout_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Poll ``probe`` until it answers ready; returns the attempts used.

    Bounded by both an attempt count and a deadline.
    """
    max_attempts = max(1, int(math.ceil(timeout_seconds / max(interval_seconds, 0.001))) + 1)
    deadline = clock() + timeout_seconds
    last_error = ""
    for attempt in range(1, max_attempts + 1):
        try:
            if probe():
                return attempt
        except AgentUnavailableError as exc:
            last_error = str(exc)
        if attempt == max_attempts or clock() >= deadline:
            break
        sleep(interval_seconds)
    detail = f": {last_error}" if last_error else ""
    raise AgentUnavailableError(f"Page agent not ready after {timeout_seconds:.1f}s{detail}")


class PlaybackOrchestrator:
    def __init__(
        self,
        coordinator: Any,
        *,
        session: ReplaySession,
        timing: PlaybackTiming | None = None,
        log: Callable[[str], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.coordinator = coordinator
        self.session = session
        self.timing = timing or load_playback_timing()
        self.state = IDLE
        self._log = log or (lambda _msg: None)
        self._sleep = sleep
        self._clock = clock
        self._observers: list[Callable[[ProgressEvent], None]] = []

    def add_observer(self, callback: Callable[[ProgressEvent], None]) -> None:
        self._observers.append(callback)

    def run_from_store(self, store: Any) -> PlaybackResult:
        try:
            actions = store.load_actions()
        except StoreAccessError as exc:
            return self._fail(str(exc), total=0, steps=[])
        return self.run(actions)

    def run(self, actions: Iterable[Action]) -> PlaybackResult:
        sequence = list(actions)
        total = len(sequence)
        if not sequence:
            self.state = COMPLETED
            self._log("No actions to play")
            return PlaybackResult(status="complete", message="No actions to play")

        steps: list[StepOutcome] = []
        self.session.begin_playback()
        try:
            self._set_state(PROVISIONING)
            self.coordinator.ensure(_start_url(sequence))
            self._set_state(AWAITING_AGENT_READY)
            try:
                self._wait_ready()
            except AgentUnavailableError as exc:
                # Each step waits again before dispatching.
                self._log(f"initial readiness: {exc}")
            for index, action in enumerate(sequence, start=1):
                steps.append(self._play_step(index, total, action))
                self._set_state(ADVANCING)
                self._notify(index, total)
                if index < total:
                    self._sleep(self.timing.settle_seconds)
        except (TabProvisioningError, StoreAccessError) as exc:
            return self._fail(str(exc), total=total, steps=steps)
        finally:
            self.session.end_playback()

        self._set_state(COMPLETED)
        failed = [step.index for step in steps if step.status != "success"]
        message = f"{len(failed)} of {total} steps failed: {failed}" if failed else ""
        self._log(f"playback complete ({total - len(failed)}/{total} succeeded)")
        return PlaybackResult(status="complete", message=message, total=total, steps=steps)

    def _play_step(self, index: int, total: int, action: Action) -> StepOutcome:
        max_attempts = self.timing.max_attempts
        last_error = ""
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                self._set_state(RETRYING)
                self._sleep(self.timing.retry_backoff_seconds)
            self._set_state(DISPATCHING)
            try:
                self._dispatch(action)
            except StepFailure as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                self._log(f"step {index}/{total} {action.kind} attempt {attempt}/{max_attempts} failed: {last_error}")
                continue
            self._log(f"step {index}/{total} {action.kind} ok (attempt {attempt})")
            return StepOutcome(index=index, kind=action.kind, status="success", attempts=attempt)
        self._log(f"step {index}/{total} {action.kind} skipped after {max_attempts} attempts")
        return StepOutcome(
            index=index,
            kind=action.kind,
            status="failed",
            attempts=max_attempts,
            error=last_error,
        )

    def _dispatch(self, action: Action) -> None:
        if isinstance(action, TabCreateAction):
            self.coordinator.open_tab(action.url, action.tab_ref)
            self._wait_ready()
            return
        if isinstance(action, TabFocusAction):
            self.coordinator.focus(action.tab_ref)
            self._wait_ready()
            return
        self.coordinator.settle_navigation()
        if action.page_url and not urls_match(self.coordinator.current_url(), action.page_url):
            self._log(f"re-provisioning for {action.page_url}")
            self.coordinator.ensure(action.page_url)
        self._wait_ready()
        self.coordinator.channel().send(action, self.timing.dispatch_timeout_seconds)
        if action.kind in NAVIGATING_ACTION_KINDS:
            self.coordinator.begin_navigation()

    def _wait_ready(self) -> None:
        wait_for_agent(
            lambda: self.coordinator.channel().probe(),
            interval_seconds=self.timing.probe_interval_seconds,
            timeout_seconds=self.timing.ready_timeout_seconds,
            sleep=self._sleep,
            clock=self._clock,
        )

    def _notify(self, current: int, total: int) -> None:
        event = ProgressEvent(
            current=current,
            total=total,
            percentage=int(round(current * 100 / total)) if total else 100,
        )
        for callback in self._observers:
            callback(event)

    def _fail(self, message: str, *, total: int, steps: list[StepOutcome]) -> PlaybackResult:
        self._set_state(FAILED)
        self._log(f"playback failed: {message}")
        return PlaybackResult(status="error", message=message, total=total, steps=steps)

    def _set_state(self, state: str) -> None:
        self.state = state


def _start_url(actions: list[Action]) -> str:
    first = actions[0]
    if first.page_url:
        return first.page_url
    for action in actions:
        url = action.page_url or getattr(action, "url", None)
        if url:
            return url
    raise TabProvisioningError("No recorded page URL to open")
