"""Turn page-side DOM events into recorded actions."""

from __future__ import annotations

import json
import time
from typing import Any, Callable

from webreplay.browser import urls_match
from webreplay.constants import (
    CAPTURE_BINDING_NAME,
    CHECKABLE_TYPES,
    PARENT_CONTEXT_DEPTH,
    SCROLL_DEBOUNCE_MS,
    SCROLL_THRESHOLD_PX,
    TAB_REF_PREFIX,
    TEXT_INPUT_TAGS,
)
from webreplay.delta import diff
from webreplay.errors import StoreAccessError
from webreplay.locator import Locator, ParentContext, PathStep
from webreplay.models import (
    Action,
    ChangeAction,
    ClickAction,
    FormSubmitAction,
    InputAction,
    NavigationAction,
    ScrollAction,
    TabCreateAction,
    TabFocusAction,
)
from webreplay.script import build_script
from webreplay.session import ReplaySession


_CAPTURE_SCRIPT_TEMPLATE = """
(() => {
  if (window.top !== window) return;
  if (window.__webreplayCaptureInstalled) return;
  window.__webreplayCaptureInstalled = true;
  const emitName = __BINDING_JSON__;
  const debounceMs = __DEBOUNCE_MS__;
  const textTypes = new Set(['text', 'search', 'email', 'url', 'tel', 'password', 'number', '']);

  const now = () => performance.timeOrigin + performance.now();
  const sameTagIndex = (el) => {
    let index = 0;
    let sibling = el;
    while ((sibling = sibling.previousElementSibling)) {
      if (sibling.tagName === el.tagName) index++;
    }
    return index;
  };
  const classOf = (el) => (typeof el.className === 'string' ? el.className : (el.getAttribute('class') || ''));
  const tableShape = (table) => {
    const rows = Array.from(table.rows || []);
    return { rows: rows.length, cols: rows.length ? rows[0].cells.length : 0 };
  };
  const describe = (el) => {
    const path = [];
    for (let node = el; node && node.nodeType === 1; node = node.parentElement) {
      path.unshift([node.tagName.toLowerCase(), sameTagIndex(node)]);
    }
    const ancestors = [];
    for (let node = el.parentElement; node && ancestors.length < __DEPTH__; node = node.parentElement) {
      const entry = {
        tagName: node.tagName.toLowerCase(),
        id: node.id || '',
        className: classOf(node),
        index: sameTagIndex(node),
      };
      const tag = entry.tagName;
      if (tag === 'ul' || tag === 'ol') {
        entry.listContext = { itemCount: node.children.length, listType: tag };
      } else if (tag === 'table') {
        entry.tableContext = tableShape(node);
      }
      ancestors.push(entry);
    }
    return {
      tagName: el.tagName.toLowerCase(),
      id: el.id || '',
      className: classOf(el),
      elementType: el.type ? String(el.type).toLowerCase() : '',
      path,
      ancestors,
    };
  };
  const emit = (payload) => {
    payload.url = location.href;
    payload.t = now();
    const fn = window[emitName];
    if (typeof fn === 'function') {
      fn(payload).catch(() => {});
    }
  };
  const isTextField = (el) => {
    if (!el || !el.tagName) return false;
    const tag = el.tagName.toLowerCase();
    if (tag === 'textarea') return true;
    return tag === 'input' && textTypes.has(String(el.type || '').toLowerCase());
  };

  document.addEventListener('click', (ev) => {
    const el = ev.target && ev.target.nodeType === 1 ? ev.target : null;
    if (!el) return;
    emit({ type: 'click', element: describe(el) });
  }, true);

  document.addEventListener('input', (ev) => {
    const el = ev.target;
    if (!isTextField(el)) return;
    let cursor = null;
    try { cursor = el.selectionStart; } catch (err) { cursor = null; }
    emit({
      type: 'input',
      element: describe(el),
      value: String(el.value || ''),
      initialValue: String(el.defaultValue || ''),
      cursor,
    });
  }, true);

  document.addEventListener('change', (ev) => {
    const el = ev.target;
    if (!el || !el.tagName || isTextField(el)) return;
    const type = String(el.type || '').toLowerCase();
    const checkable = type === 'checkbox' || type === 'radio';
    emit({ type: 'change', element: describe(el), value: checkable ? !!el.checked : String(el.value || '') });
  }, true);

  document.addEventListener('submit', (ev) => {
    const form = ev.target;
    if (!form || !form.tagName) return;
    emit({ type: 'submit', element: describe(form) });
  }, true);

  let scrollTimer = null;
  window.addEventListener('scroll', () => {
    if (scrollTimer) clearTimeout(scrollTimer);
    scrollTimer = setTimeout(() => {
      scrollTimer = null;
      emit({ type: 'scroll', x: window.scrollX, y: window.scrollY });
    }, debounceMs);
  }, { passive: true });

  let lastHref = location.href;
  const observeUrl = () => {
    if (location.href === lastHref) return;
    const fromUrl = lastHref;
    lastHref = location.href;
    emit({ type: 'urlchange', fromUrl });
  };
  const startObserver = () => {
    new MutationObserver(observeUrl).observe(document, { subtree: true, childList: true });
  };
  if (document.documentElement) {
    startObserver();
  } else {
    document.addEventListener('DOMContentLoaded', startObserver, { once: true });
  }
  window.addEventListener('popstate', observeUrl);

  document.addEventListener('visibilitychange', () => {
    if (document.visibilityState === 'visible') emit({ type: 'focus' });
  });
})();
"""


def capture_script(scroll_debounce_ms: int = SCROLL_DEBOUNCE_MS) -> str:
    return (
        _CAPTURE_SCRIPT_TEMPLATE.replace("__BINDING_JSON__", json.dumps(CAPTURE_BINDING_NAME))
        .replace("__DEBOUNCE_MS__", str(max(0, int(scroll_debounce_ms))))
        .replace("__DEPTH__", str(PARENT_CONTEXT_DEPTH))
    )


class CapturePipeline:
    """Builds one Action per qualifying raw page event and hands it to ``sink``."""

    def __init__(
        self,
        session: ReplaySession,
        sink: Callable[[Action], None],
        *,
        scroll_threshold_px: int = SCROLL_THRESHOLD_PX,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.session = session
        self.sink = sink
        self.scroll_threshold_px = scroll_threshold_px
        self._clock = clock or (lambda: time.time() * 1000.0)
        self._last_values: dict[str, str] = {}
        self._last_scroll: dict[str, tuple[float, float]] = {}
        self._last_url: dict[str, str] = {}
        self._focused_tab: str | None = None
        self._last_ts = 0.0

    def reset(self) -> None:
        self._last_values.clear()
        self._last_scroll.clear()
        self._last_url.clear()
        self._focused_tab = None
        self._last_ts = 0.0

    def observe_url(self, tab_ref: str, url: str) -> None:
        """Remember a tab's URL without recording a navigation."""
        if url and url != "about:blank":
            self._last_url[tab_ref] = url

    def focus_tab(self, tab_ref: str) -> None:
        self._focused_tab = tab_ref

    def handle_event(self, raw: dict[str, Any], tab_ref: str | None = None) -> Action | None:
        if not self.session.recording:
            return None
        if not isinstance(raw, dict):
            raise ValueError("raw event must be an object")
        tab = tab_ref or ""
        kind = raw.get("type")
        if kind == "click":
            action = self._click(raw)
        elif kind == "input":
            action = self._input(raw)
        elif kind == "change":
            action = self._change(raw)
        elif kind == "scroll":
            action = self._scroll(raw, tab)
        elif kind == "submit":
            action = self._submit(raw)
        elif kind == "urlchange":
            action = self._url_change(raw, tab)
        elif kind == "focus":
            action = self._focus(raw, tab)
        else:
            raise ValueError(f"Unknown raw event type: {kind!r}")
        if action is not None:
            self.sink(action)
        return action

    def record_tab_created(self, tab_ref: str, url: str | None, opener_tab_ref: str | None) -> Action | None:
        if not self.session.recording:
            return None
        live_url = url if url and url != "about:blank" else None
        if live_url:
            self._last_url[tab_ref] = live_url
        self._focused_tab = tab_ref
        action = TabCreateAction(
            captured_at_ms=self._timestamp(None),
            page_url=live_url or "",
            url=live_url,
            opener_tab_ref=opener_tab_ref,
            tab_ref=tab_ref,
        )
        self.sink(action)
        return action

    def _timestamp(self, raw_ts: Any) -> float:
        if isinstance(raw_ts, bool) or not isinstance(raw_ts, (int, float)):
            ts = float(self._clock())
        else:
            ts = float(raw_ts)
        # Events from different tabs can arrive slightly out of order.
        ts = max(ts, self._last_ts)
        self._last_ts = ts
        return ts

    def _common(self, raw: dict[str, Any], element: dict[str, Any] | None) -> dict[str, Any]:
        return {
            "captured_at_ms": self._timestamp(raw.get("t")),
            "page_url": str(raw.get("url") or ""),
            "locator": _locator_from(element) if element is not None else None,
        }

    def _click(self, raw: dict[str, Any]) -> Action:
        element = _element_of(raw)
        return ClickAction(
            **self._common(raw, element),
            tag_name=str(element.get("tagName") or "").lower(),
            element_type=element.get("elementType") or None,
            element_id=element.get("id") or None,
            class_name=element.get("className") or None,
            parent_context=_parent_context_from(element),
        )

    def _input(self, raw: dict[str, Any]) -> Action | None:
        element = _element_of(raw)
        tag = str(element.get("tagName") or "").lower()
        if tag not in TEXT_INPUT_TAGS:
            return None
        common = self._common(raw, element)
        key = common["locator"].key() if common["locator"] is not None else f"{tag}:{element.get('id', '')}"
        current = str(raw.get("value") or "")
        previous = self._last_values.get(key, str(raw.get("initialValue") or ""))
        delta = diff(previous, current)
        self._last_values[key] = current
        if delta is None:
            return None
        cursor = raw.get("cursor")
        return InputAction(
            **common,
            tag_name=tag,
            element_id=element.get("id") or None,
            class_name=element.get("className") or None,
            delta_kind=delta.kind,
            delta_payload=delta.payload,
            cursor_position=cursor if isinstance(cursor, int) and not isinstance(cursor, bool) else None,
            value=current,
        )

    def _change(self, raw: dict[str, Any]) -> Action:
        element = _element_of(raw)
        element_type = str(element.get("elementType") or "").lower()
        value = raw.get("value")
        if element_type in CHECKABLE_TYPES:
            value = bool(value)
        else:
            value = "" if value is None else str(value)
        return ChangeAction(
            **self._common(raw, element),
            tag_name=str(element.get("tagName") or "").lower(),
            element_type=element_type or None,
            element_id=element.get("id") or None,
            class_name=element.get("className") or None,
            value=value,
        )

    def _scroll(self, raw: dict[str, Any], tab: str) -> Action | None:
        x = float(raw.get("x") or 0)
        y = float(raw.get("y") or 0)
        last_x, last_y = self._last_scroll.get(tab, (0.0, 0.0))
        threshold = self.scroll_threshold_px
        if abs(x - last_x) <= threshold and abs(y - last_y) <= threshold:
            return None
        self._last_scroll[tab] = (x, y)
        return ScrollAction(**self._common(raw, None), x=x, y=y)

    def _submit(self, raw: dict[str, Any]) -> Action | None:
        element = _element_of(raw)
        common = self._common(raw, element)
        if common["locator"] is None:
            return None
        return FormSubmitAction(
            **common,
            tag_name=str(element.get("tagName") or "form").lower(),
            element_id=element.get("id") or None,
            class_name=element.get("className") or None,
        )

    def _url_change(self, raw: dict[str, Any], tab: str) -> Action | None:
        url = str(raw.get("url") or "")
        if not url or url == "about:blank":
            return None
        previous = self._last_url.get(tab)
        if previous is not None and urls_match(previous, url):
            return None
        self._last_url[tab] = url
        from_url = previous or (str(raw.get("fromUrl")) if raw.get("fromUrl") else None)
        return NavigationAction(**self._common(raw, None), url=url, from_url=from_url)

    def _focus(self, raw: dict[str, Any], tab: str) -> Action | None:
        if not tab or tab == self._focused_tab:
            return None
        self._focused_tab = tab
        return TabFocusAction(**self._common(raw, None), tab_ref=tab)


class Recorder:
    """Wires a CapturePipeline into a Playwright browser context."""

    def __init__(
        self,
        pipeline: CapturePipeline,
        *,
        scroll_debounce_ms: int = SCROLL_DEBOUNCE_MS,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.scroll_debounce_ms = scroll_debounce_ms
        self._log = log or (lambda _msg: None)
        self._refs: dict[Any, str] = {}
        self._counter = 0
        self.failure: StoreAccessError | None = None

    def attach(self, context: Any) -> None:
        context.expose_binding(CAPTURE_BINDING_NAME, self._on_binding)
        context.add_init_script(capture_script(self.scroll_debounce_ms))
        for page in list(context.pages):
            self._adopt(page)
        context.on("page", self._on_page)

    def tab_ref(self, page: Any) -> str:
        ref = self._refs.get(page)
        if ref is None:
            ref = self._adopt(page)
        return ref

    def _adopt(self, page: Any) -> str:
        self._counter += 1
        ref = f"{TAB_REF_PREFIX}{self._counter}"
        self._refs[page] = ref
        self.pipeline.observe_url(ref, page.url)
        page.on("framenavigated", lambda frame: self._on_frame_navigated(page, frame))
        self._log(f"recorder: tracking {ref}")
        if self._counter == 1:
            self.pipeline.focus_tab(ref)
        return ref

    def _on_page(self, page: Any) -> None:
        opener = page.opener()
        opener_ref = self._refs.get(opener) if opener is not None else None
        ref = self._adopt(page)
        try:
            action = self.pipeline.record_tab_created(ref, page.url, opener_ref)
        except StoreAccessError as exc:
            self.failure = exc
            self._log(f"store error: {exc}")
            return
        if action is not None:
            self._log(f"recorded tabCreate {ref} opener={opener_ref}")

    def _on_frame_navigated(self, page: Any, frame: Any) -> None:
        if frame.parent_frame is not None:
            return
        self._dispatch({"type": "urlchange", "url": frame.url}, self.tab_ref(page))

    def _on_binding(self, source: dict[str, Any], raw: dict[str, Any]) -> None:
        page = source.get("page") if isinstance(source, dict) else None
        tab = self.tab_ref(page) if page is not None else None
        self._dispatch(raw, tab)

    def _dispatch(self, raw: dict[str, Any], tab: str | None) -> None:
        try:
            action = self.pipeline.handle_event(raw, tab)
        except ValueError as exc:
            self._log(f"capture error ({tab}): {exc}")
            return
        except StoreAccessError as exc:
            self.failure = exc
            self._log(f"store error: {exc}")
            return
        if action is not None:
            self._log(f"recorded {action.kind} on {tab} at {action.page_url}")


def _element_of(raw: dict[str, Any]) -> dict[str, Any]:
    element = raw.get("element")
    if not isinstance(element, dict):
        raise ValueError(f"{raw.get('type')} event is missing its element description")
    return element


def _locator_from(element: dict[str, Any]) -> Locator | None:
    element_id = element.get("id")
    if isinstance(element_id, str) and element_id:
        return Locator.by_id(element_id)
    raw_path = element.get("path")
    if not isinstance(raw_path, list) or not raw_path:
        return None
    steps = []
    for item in raw_path:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ValueError(f"invalid structural path step: {item!r}")
        steps.append(PathStep(tag_name=str(item[0]).lower(), index=int(item[1])))
    return Locator.by_structural_path(steps)


def _parent_context_from(element: dict[str, Any]) -> tuple[ParentContext, ...]:
    ancestors = element.get("ancestors") or []
    if not isinstance(ancestors, list):
        raise ValueError("'ancestors' must be a list")
    return tuple(ParentContext.from_dict(entry) for entry in ancestors[:PARENT_CONTEXT_DEPTH])


def start_recording(store: Any, session: ReplaySession, pipeline: CapturePipeline | None = None) -> None:
    """Begin a fresh recording: previous actions and transcript are discarded."""
    session.start_recording()
    store.clear_actions()
    store.set_recording(True)
    if pipeline is not None:
        pipeline.reset()


def stop_recording(store: Any, session: ReplaySession) -> tuple[list[Action], str]:
    session.stop_recording()
    store.set_recording(False)
    actions = store.load_actions()
    script = build_script(actions)
    store.save_script(script)
    return actions, script
