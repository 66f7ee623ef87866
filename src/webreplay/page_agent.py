"""Executes actions against one live page and the host channel that talks to it."""

from __future__ import annotations

import time
from typing import Any, Callable

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from webreplay.browser import urls_match
from webreplay.constants import AGENT_PLAY_COMMAND, AGENT_READY_COMMAND, DISPATCH_TIMEOUT_SECONDS
from webreplay.delta import apply_delta
from webreplay.dom import LiveDocument
from webreplay.errors import (
    DispatchError,
    DispatchTimeoutError,
    LocatorResolutionError,
    StepFailure,
)
from webreplay.locator import resolve_target
from webreplay.models import (
    Action,
    ChangeAction,
    ClickAction,
    FormSubmitAction,
    InputAction,
    NavigationAction,
    ScrollAction,
    parse_action,
)


_SET_TEXT_JS = """
(el, args) => {
  el.focus();
  el.value = args.value;
  try { el.setSelectionRange(args.cursor, args.cursor); } catch (err) {}
  el.dispatchEvent(new Event('input', { bubbles: true }));
}
"""

_SET_CHANGE_JS = """
(el, value) => {
  if (typeof value === 'boolean') {
    el.checked = value;
  } else {
    el.value = value;
  }
  el.dispatchEvent(new Event('input', { bubbles: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
}
"""

_SUBMIT_JS = "(form) => { if (typeof form.submit === 'function') form.submit(); }"


class PageAgent:
    """Answers readiness probes and plays actions on ``page``."""

    def __init__(self, page: Any, *, default_timeout_ms: int = int(DISPATCH_TIMEOUT_SECONDS * 1000)) -> None:
        self.page = page
        self.default_timeout_ms = default_timeout_ms

    def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        command = message.get("command") if isinstance(message, dict) else None
        if command == AGENT_READY_COMMAND:
            return {"ready": self.is_ready()}
        if command != AGENT_PLAY_COMMAND:
            return {"error": f"Unknown command: {command!r}", "code": "invalid"}
        timeout_ms = message.get("timeoutMs") or self.default_timeout_ms
        try:
            action = parse_action(message.get("action"))
        except ValueError as exc:
            return {"error": f"Invalid action: {exc}", "code": "invalid"}
        try:
            self.play(action, int(timeout_ms))
        except LocatorResolutionError as exc:
            return {"error": str(exc), "code": "locator"}
        except PlaywrightTimeoutError as exc:
            return {"error": _first_line(exc), "code": "timeout"}
        except PlaywrightError as exc:
            return {"error": _first_line(exc), "code": "execution"}
        except ValueError as exc:
            return {"error": str(exc), "code": "invalid"}
        return {"status": "success"}

    def is_ready(self) -> bool:
        if self.page.is_closed():
            return False
        try:
            state = self.page.evaluate("() => document.readyState")
        except PlaywrightError:
            # Execution context is swapped out mid-navigation.
            return False
        return state in ("interactive", "complete")

    def play(self, action: Action, timeout_ms: int) -> None:
        self.page.set_default_timeout(timeout_ms)
        if isinstance(action, ScrollAction):
            self.page.evaluate("([x, y]) => window.scrollTo(x, y)", [action.x, action.y])
            return
        if isinstance(action, NavigationAction):
            if not urls_match(self.page.url, action.url):
                self.page.goto(action.url, timeout=timeout_ms, wait_until="commit")
            return
        if not isinstance(action, (ClickAction, InputAction, ChangeAction, FormSubmitAction)):
            raise ValueError(f"{action.kind} actions are not executed inside the page")
        handle = self._resolve(action)
        if isinstance(action, ClickAction):
            handle.scroll_into_view_if_needed(timeout=timeout_ms)
            handle.click(timeout=timeout_ms)
        elif isinstance(action, InputAction):
            live = handle.input_value(timeout=timeout_ms)
            value, cursor = apply_delta(
                live,
                action.delta_kind,
                action.delta_payload,
                cursor_position=action.cursor_position,
                recorded_value=action.value,
            )
            handle.evaluate(_SET_TEXT_JS, {"value": value, "cursor": cursor})
        elif isinstance(action, ChangeAction):
            handle.evaluate(_SET_CHANGE_JS, action.value)
        else:
            # form.submit() returns before the new document commits.
            with self.page.expect_navigation(timeout=timeout_ms, wait_until="commit"):
                handle.evaluate(_SUBMIT_JS)

    def _resolve(self, action: Action) -> Any:
        element = resolve_target(action.locator, action.hints(), LiveDocument(self.page))
        if element is None:
            where = action.locator.key() if action.locator is not None else action.hints().tag_name
            raise LocatorResolutionError(f"No element matches {where or 'the recorded target'}")
        return element.handle


class AgentChannel:
    """Host side of the request/response pair with one page agent."""

    def __init__(self, agent: Any, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.agent = agent
        self._clock = clock

    def probe(self) -> bool:
        reply = self.agent.handle({"command": AGENT_READY_COMMAND})
        return bool(isinstance(reply, dict) and reply.get("ready"))

    def send(self, action: Action, timeout_seconds: float) -> None:
        started = self._clock()
        reply = self.agent.handle(
            {
                "command": AGENT_PLAY_COMMAND,
                "action": action.to_dict(),
                "timeoutMs": int(timeout_seconds * 1000),
            }
        )
        elapsed = self._clock() - started
        if not isinstance(reply, dict):
            raise DispatchError(f"Malformed agent reply: {reply!r}")
        if reply.get("status") == "success":
            if elapsed > timeout_seconds:
                raise DispatchTimeoutError(
                    f"{action.kind} exceeded its {timeout_seconds:.0f}s budget ({elapsed:.1f}s)"
                )
            return
        raise _failure_for(reply)


def _failure_for(reply: dict[str, Any]) -> StepFailure:
    message = str(reply.get("error") or "agent reported a failure")
    code = reply.get("code")
    if code == "locator":
        return LocatorResolutionError(message)
    if code == "timeout":
        return DispatchTimeoutError(message)
    return DispatchError(message)


def _first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__
