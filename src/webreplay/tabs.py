"""Ownership of the playback tab across navigations and new-tab actions."""

from __future__ import annotations

import time
from typing import Any, Callable

from playwright.sync_api import Error as PlaywrightError

from webreplay.constants import FIRST_RECORDED_TAB, POST_LOAD_SETTLE_MS
from webreplay.errors import AgentUnavailableError, DispatchError, TabProvisioningError
from webreplay.page_agent import AgentChannel, PageAgent
from webreplay.session import ReplaySession


class PlaywrightTabDriver:
    """Tab operations over a Playwright ``BrowserContext``; refs are ``tab-N``."""

    def __init__(self, context: Any, *, timeout_ms: int) -> None:
        self.context = context
        self.timeout_ms = timeout_ms
        self._pages: dict[str, Any] = {}
        self._agents: dict[str, PageAgent] = {}
        self._counter = 0

    def create(self, url: str | None) -> str:
        try:
            page = self.context.new_page()
        except PlaywrightError as exc:
            raise TabProvisioningError(f"Cannot open a new tab: {exc}") from exc
        self._counter += 1
        ref = f"tab-{self._counter}"
        self._pages[ref] = page
        self._agents[ref] = PageAgent(page, default_timeout_ms=self.timeout_ms)
        if url:
            self.navigate(ref, url)
        return ref

    def navigate(self, ref: str, url: str) -> None:
        page = self._page(ref)
        try:
            page.goto(url, timeout=self.timeout_ms, wait_until="commit")
        except PlaywrightError as exc:
            raise TabProvisioningError(f"Cannot navigate {ref} to {url}: {exc}") from exc

    def wait_for_load(self, ref: str) -> bool:
        page = self._pages.get(ref)
        if page is None or page.is_closed():
            return False
        try:
            page.wait_for_load_state("load", timeout=self.timeout_ms)
        except PlaywrightError:
            return False
        return True

    def activate(self, ref: str) -> None:
        page = self._page(ref)
        try:
            page.bring_to_front()
        except PlaywrightError as exc:
            raise DispatchError(f"Cannot focus {ref}: {exc}") from exc

    def current_url(self, ref: str) -> str:
        page = self._pages.get(ref)
        if page is None or page.is_closed():
            return ""
        return str(page.url or "")

    def has_tab(self, ref: str) -> bool:
        page = self._pages.get(ref)
        return page is not None and not page.is_closed()

    def agent(self, ref: str) -> PageAgent:
        if not self.has_tab(ref):
            raise AgentUnavailableError(f"Tab {ref} is gone")
        return self._agents[ref]

    def _page(self, ref: str) -> Any:
        page = self._pages.get(ref)
        if page is None or page.is_closed():
            raise TabProvisioningError(f"Tab {ref} is not open")
        return page


class TabCoordinator:
    """Creates, navigates and focuses the single playback tab."""

    def __init__(
        self,
        driver: Any,
        session: ReplaySession,
        *,
        post_load_settle_seconds: float = POST_LOAD_SETTLE_MS / 1000.0,
        sleep: Callable[[float], None] = time.sleep,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.driver = driver
        self.session = session
        self.post_load_settle_seconds = post_load_settle_seconds
        self._sleep = sleep
        self._log = log or (lambda _msg: None)

    @property
    def tab(self) -> str | None:
        return self.session.playback_tab

    def ensure(self, url: str) -> str:
        tab = self.session.playback_tab
        if tab is None or not self.driver.has_tab(tab):
            return self._create_and_adopt(url)
        try:
            self.driver.navigate(tab, url)
        except TabProvisioningError as exc:
            self._log(f"navigate {tab} failed, opening a new tab: {exc}")
            return self._create_and_adopt(url)
        self._settle(tab)
        return tab

    def open_tab(self, url: str | None, recorded_ref: str | None = None) -> str:
        existing = self.session.tab_aliases.get(recorded_ref) if recorded_ref else None
        if existing is not None and self.driver.has_tab(existing):
            # A retried tabCreate: the tab from the earlier attempt is still open.
            ref = existing
            self._log(f"reusing {ref} for recorded {recorded_ref}")
        else:
            ref = self.driver.create(url)
            self._log(f"opened {ref} for recorded {recorded_ref or '-'} url={url or 'about:blank'}")
        self.session.playback_tab = ref
        if recorded_ref:
            self.session.tab_aliases[recorded_ref] = ref
        self.driver.activate(ref)
        self._settle(ref)
        return ref

    def focus(self, recorded_ref: str) -> str:
        live = self.session.live_tab_for(recorded_ref)
        if not self.driver.has_tab(live):
            raise DispatchError(f"No open tab for recorded {recorded_ref}")
        self.driver.activate(live)
        self.session.playback_tab = live
        self._log(f"focused {live} for recorded {recorded_ref}")
        return live

    def begin_navigation(self) -> None:
        self.session.navigating = True

    def settle_navigation(self) -> None:
        if not self.session.navigating:
            return
        tab = self.session.playback_tab
        if tab is None:
            self.session.navigating = False
            return
        self._settle(tab)

    def current_url(self) -> str:
        tab = self.session.playback_tab
        return self.driver.current_url(tab) if tab else ""

    def channel(self) -> AgentChannel:
        tab = self.session.playback_tab
        if tab is None:
            raise AgentUnavailableError("No playback tab is open")
        return AgentChannel(self.driver.agent(tab))

    def _create_and_adopt(self, url: str) -> str:
        previous = self.session.playback_tab
        ref = self.driver.create(url)
        self.session.playback_tab = ref
        aliases = self.session.tab_aliases
        if previous is None and not aliases:
            aliases[FIRST_RECORDED_TAB] = ref
        elif previous is not None:
            # Recorded refs that pointed at the replaced tab follow the new one.
            for recorded, live in list(aliases.items()):
                if live == previous:
                    aliases[recorded] = ref
        self._log(f"adopted {ref} as playback tab at {url}")
        self._settle(ref)
        return ref

    def _settle(self, ref: str) -> None:
        if not self.driver.wait_for_load(ref):
            self._log(f"{ref} did not report load-complete")
        self._sleep(self.post_load_settle_seconds)
        self.session.navigating = False
