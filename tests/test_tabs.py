import unittest

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from webreplay.errors import AgentUnavailableError, DispatchError, TabProvisioningError
from webreplay.page_agent import AgentChannel, PageAgent
from webreplay.session import ReplaySession
from webreplay.tabs import PlaywrightTabDriver, TabCoordinator


class _FakeDriver:
    def __init__(self) -> None:
        self.urls: dict[str, str] = {}
        self.closed: set[str] = set()
        self.refuse_navigation: set[str] = set()
        self.fail_create = False
        self.calls: list[tuple] = []
        self._counter = 0

    def create(self, url: str | None) -> str:
        if self.fail_create:
            raise TabProvisioningError("browser is gone")
        self._counter += 1
        ref = f"tab-{self._counter}"
        self.urls[ref] = url or "about:blank"
        self.calls.append(("create", url))
        return ref

    def navigate(self, ref: str, url: str) -> None:
        if ref in self.closed or ref in self.refuse_navigation:
            raise TabProvisioningError(f"{ref} refused")
        self.urls[ref] = url
        self.calls.append(("navigate", ref, url))

    def wait_for_load(self, ref: str) -> bool:
        self.calls.append(("load", ref))
        return True

    def activate(self, ref: str) -> None:
        self.calls.append(("activate", ref))

    def current_url(self, ref: str) -> str:
        return self.urls.get(ref, "")

    def has_tab(self, ref: str) -> bool:
        return ref in self.urls and ref not in self.closed

    def agent(self, ref: str):
        return {"ref": ref}


class TabCoordinatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.driver = _FakeDriver()
        self.session = ReplaySession()
        self.sleeps: list[float] = []
        self.lines: list[str] = []
        self.coordinator = TabCoordinator(
            self.driver,
            self.session,
            post_load_settle_seconds=1.5,
            sleep=self.sleeps.append,
            log=self.lines.append,
        )

    def test_first_ensure_creates_and_adopts_tab(self) -> None:
        ref = self.coordinator.ensure("https://a.test/")
        self.assertEqual(ref, "tab-1")
        self.assertEqual(self.session.playback_tab, "tab-1")
        self.assertEqual(self.driver.calls, [("create", "https://a.test/"), ("load", "tab-1")])
        self.assertEqual(self.sleeps, [1.5])

    def test_later_ensure_navigates_in_place(self) -> None:
        self.coordinator.ensure("https://a.test/")
        ref = self.coordinator.ensure("https://a.test/b")
        self.assertEqual(ref, "tab-1")
        self.assertIn(("navigate", "tab-1", "https://a.test/b"), self.driver.calls)
        self.assertEqual(self.coordinator.current_url(), "https://a.test/b")

    def test_rejected_navigation_falls_back_to_new_tab(self) -> None:
        self.coordinator.ensure("https://a.test/")
        self.driver.refuse_navigation.add("tab-1")
        ref = self.coordinator.ensure("https://a.test/b")
        self.assertEqual(ref, "tab-2")
        self.assertEqual(self.session.playback_tab, "tab-2")
        self.assertTrue(any("opening a new tab" in line for line in self.lines))

    def test_closed_tab_is_replaced(self) -> None:
        self.coordinator.ensure("https://a.test/")
        self.driver.closed.add("tab-1")
        self.assertEqual(self.coordinator.ensure("https://a.test/"), "tab-2")

    def test_creation_failure_propagates(self) -> None:
        self.driver.fail_create = True
        with self.assertRaises(TabProvisioningError):
            self.coordinator.ensure("https://a.test/")

    def test_navigation_flag_is_cleared_by_next_load_wait(self) -> None:
        self.coordinator.ensure("https://a.test/")
        self.driver.calls.clear()
        self.coordinator.settle_navigation()
        self.assertEqual(self.driver.calls, [])
        self.coordinator.begin_navigation()
        self.assertTrue(self.session.navigating)
        self.coordinator.settle_navigation()
        self.assertFalse(self.session.navigating)
        self.assertEqual(self.driver.calls, [("load", "tab-1")])

    def test_open_tab_records_alias_and_focus_maps_back(self) -> None:
        self.coordinator.ensure("https://a.test/")
        ref = self.coordinator.open_tab("https://b.test/", "tab-7")
        self.assertEqual(ref, "tab-2")
        self.assertEqual(self.session.tab_aliases, {"tab-1": "tab-1", "tab-7": "tab-2"})
        self.assertEqual(self.session.playback_tab, "tab-2")

        self.assertEqual(self.coordinator.focus("tab-7"), "tab-2")
        self.assertEqual(self.coordinator.focus("tab-1"), "tab-1")
        self.assertEqual(self.session.playback_tab, "tab-1")
        self.assertEqual(self.driver.calls[-1], ("activate", "tab-1"))

    def test_retried_open_tab_reuses_the_open_tab(self) -> None:
        self.coordinator.ensure("https://a.test/")
        first = self.coordinator.open_tab("https://b.test/", "tab-2")
        again = self.coordinator.open_tab("https://b.test/", "tab-2")
        self.assertEqual(first, again)
        creates = [call for call in self.driver.calls if call[0] == "create"]
        self.assertEqual(creates, [("create", "https://a.test/"), ("create", "https://b.test/")])

        self.driver.closed.add(first)
        self.assertEqual(self.coordinator.open_tab("https://b.test/", "tab-2"), "tab-3")

    def test_first_tab_alias_follows_a_replacement_tab(self) -> None:
        self.coordinator.ensure("https://a.test/")
        self.coordinator.open_tab("https://b.test/", "tab-2")
        self.coordinator.focus("tab-1")
        self.driver.refuse_navigation.add("tab-1")
        self.assertEqual(self.coordinator.ensure("https://a.test/next"), "tab-3")
        self.assertEqual(self.session.tab_aliases, {"tab-1": "tab-3", "tab-2": "tab-2"})

        self.coordinator.focus("tab-2")
        self.assertEqual(self.coordinator.focus("tab-1"), "tab-3")

    def test_focus_on_unknown_tab_is_a_step_failure(self) -> None:
        with self.assertRaises(DispatchError):
            self.coordinator.focus("tab-9")

    def test_channel_needs_a_tab(self) -> None:
        with self.assertRaises(AgentUnavailableError):
            self.coordinator.channel()
        self.coordinator.ensure("https://a.test/")
        channel = self.coordinator.channel()
        self.assertIsInstance(channel, AgentChannel)
        self.assertEqual(channel.agent, {"ref": "tab-1"})


class _FakePage:
    def __init__(self) -> None:
        self.url = "about:blank"
        self.closed = False
        self.goto_error: Exception | None = None
        self.load_error: Exception | None = None
        self.front = 0

    def goto(self, url: str, timeout: float | None = None, wait_until: str | None = None) -> None:
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url

    def wait_for_load_state(self, state: str = "load", timeout: float | None = None) -> None:
        if self.load_error is not None:
            raise self.load_error

    def bring_to_front(self) -> None:
        self.front += 1

    def is_closed(self) -> bool:
        return self.closed


class _FakeContext:
    def __init__(self) -> None:
        self.pages: list[_FakePage] = []
        self.fail = False

    def new_page(self) -> _FakePage:
        if self.fail:
            raise PlaywrightError("Target page, context or browser has been closed")
        page = _FakePage()
        self.pages.append(page)
        return page


class PlaywrightTabDriverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.context = _FakeContext()
        self.driver = PlaywrightTabDriver(self.context, timeout_ms=2000)

    def test_create_and_navigate(self) -> None:
        ref = self.driver.create("https://a.test/")
        self.assertEqual(ref, "tab-1")
        self.assertEqual(self.driver.current_url(ref), "https://a.test/")
        self.assertTrue(self.driver.has_tab(ref))
        self.assertIsInstance(self.driver.agent(ref), PageAgent)
        self.assertEqual(self.driver.agent(ref).default_timeout_ms, 2000)
        self.driver.activate(ref)
        self.assertEqual(self.context.pages[0].front, 1)

    def test_browser_errors_become_provisioning_errors(self) -> None:
        ref = self.driver.create(None)
        self.context.pages[0].goto_error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        with self.assertRaises(TabProvisioningError):
            self.driver.navigate(ref, "https://nowhere.test/")
        self.context.fail = True
        with self.assertRaises(TabProvisioningError):
            self.driver.create("https://a.test/")

    def test_load_wait_reports_failure(self) -> None:
        ref = self.driver.create("https://a.test/")
        self.assertTrue(self.driver.wait_for_load(ref))
        self.context.pages[0].load_error = PlaywrightTimeoutError("Timeout 2000ms exceeded.")
        self.assertFalse(self.driver.wait_for_load(ref))
        self.assertFalse(self.driver.wait_for_load("tab-9"))

    def test_closed_page_is_gone(self) -> None:
        ref = self.driver.create("https://a.test/")
        self.context.pages[0].closed = True
        self.assertFalse(self.driver.has_tab(ref))
        self.assertEqual(self.driver.current_url(ref), "")
        with self.assertRaises(AgentUnavailableError):
            self.driver.agent(ref)
        with self.assertRaises(TabProvisioningError):
            self.driver.navigate(ref, "https://a.test/")


if __name__ == "__main__":
    unittest.main()
