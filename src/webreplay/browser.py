"""Browser launch and URL helpers shared by recording and playback."""

from __future__ import annotations

import importlib.util
from typing import Any
from urllib.parse import urlparse


def playwright_available() -> bool:
    return importlib.util.find_spec("playwright.sync_api") is not None


def launch_browser(playwright_obj: Any, *, headless: bool = False, slow_mo: int = 0) -> Any:
    kwargs: dict[str, Any] = {"headless": headless}
    if slow_mo > 0:
        kwargs["slow_mo"] = slow_mo
    if not headless:
        kwargs["args"] = [
            "--window-size=1280,860",
            "--window-position=80,60",
        ]
    try:
        return playwright_obj.chromium.launch(channel="chrome", **kwargs)
    except Exception:
        return playwright_obj.chromium.launch(**kwargs)


def urls_match(current_url: str, target_url: str) -> bool:
    """Same scheme, host, path (trailing slash ignored), query and fragment."""
    if current_url == target_url:
        return True
    try:
        current = urlparse(current_url)
        target = urlparse(target_url)
    except ValueError:
        return False
    if not current.scheme or not target.scheme:
        return False
    return (
        current.scheme == target.scheme
        and current.netloc.lower() == target.netloc.lower()
        and (current.path.rstrip("/") or "/") == (target.path.rstrip("/") or "/")
        and current.query == target.query
        and current.fragment == target.fragment
    )
