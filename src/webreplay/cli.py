"""CLI entrypoint for webreplay."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from webreplay.browser import launch_browser, playwright_available
from webreplay.capture import CapturePipeline, Recorder, start_recording, stop_recording
from webreplay.config import default_store_path, load_capture_config, load_playback_timing
from webreplay.constants import STORE_ACTIONS_KEY
from webreplay.dom import SnapshotDocument
from webreplay.errors import StoreAccessError
from webreplay.locator import resolve, resolve_target
from webreplay.models import Action
from webreplay.playback import PlaybackOrchestrator, PlaybackResult, ProgressEvent
from webreplay.script import build_script, summarize_recording
from webreplay.session import ReplaySession
from webreplay.storage import (
    ActionStore,
    append_log,
    create_run_context,
    status_payload,
    tail_lines,
    write_json,
    write_status,
)
from webreplay.tabs import PlaywrightTabDriver, TabCoordinator


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "record":
        record_command(args.url)
        return
    if args.command == "play":
        play_command(headless=args.headless)
        return
    if args.command == "script":
        script_command()
        return
    if args.command == "status":
        print(json.dumps(status_payload(), indent=2, ensure_ascii=False))
        return
    if args.command == "logs":
        logs_command(args.tail)
        return
    if args.command == "clear":
        clear_command()
        return
    if args.command == "check":
        check_command(Path(args.html_file))
        return

    parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webreplay", description="Record and replay browser sessions.")
    subparsers = parser.add_subparsers(dest="command")

    record_parser = subparsers.add_parser("record", help="Record interactions: webreplay record <url>")
    record_parser.add_argument("url", type=str)

    play_parser = subparsers.add_parser("play", help="Replay the recorded actions")
    play_parser.add_argument(
        "--headless",
        action="store_true",
        help="Run the browser without a window.",
    )

    subparsers.add_parser("script", help="Print the transcript of the last recording")
    subparsers.add_parser("status", help="Show latest run status")

    logs_parser = subparsers.add_parser("logs", help="Tail logs for latest run")
    logs_parser.add_argument("--tail", type=int, default=200)

    subparsers.add_parser("clear", help="Discard recorded actions")

    check_parser = subparsers.add_parser(
        "check",
        help="Resolve recorded locators against a saved HTML snapshot",
    )
    check_parser.add_argument("html_file", type=str)
    return parser


def _open_store() -> ActionStore:
    return ActionStore(default_store_path())


def _is_valid_url(text: str) -> bool:
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https", "file") and bool(parsed.netloc or parsed.path)


def record_command(url: str) -> None:
    if not _is_valid_url(url):
        raise SystemExit(f"Not a recordable URL: {url}")
    if not playwright_available():
        raise SystemExit("Playwright is not installed. Run: pip install playwright && playwright install chromium")
    from playwright.sync_api import Error as PlaywrightError
    from playwright.sync_api import sync_playwright

    store = _open_store()
    session = ReplaySession()
    capture_config = load_capture_config()
    ctx = create_run_context()

    def log(message: str) -> None:
        append_log(ctx.replay_log, message)

    pipeline = CapturePipeline(
        session,
        store.append_action,
        scroll_threshold_px=capture_config.scroll_threshold_px,
    )
    recorder = Recorder(pipeline, scroll_debounce_ms=capture_config.scroll_debounce_ms, log=log)
    try:
        start_recording(store, session, pipeline)
    except StoreAccessError as exc:
        raise SystemExit(str(exc)) from exc
    log(f"run_id={ctx.run_id}")
    log(f"record url={url} store={store.path}")
    write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, result="recording", state="running")
    print("Recording. Close the browser window or press Ctrl+C to stop.")

    interrupted = False
    try:
        with sync_playwright() as p:
            browser = launch_browser(p, headless=False)
            context = browser.new_context()
            page = context.new_page()
            recorder.attach(context)
            try:
                page.goto(url)
                while recorder.failure is None and context.pages:
                    context.pages[0].wait_for_timeout(250)
            except KeyboardInterrupt:
                interrupted = True
            except PlaywrightError as exc:
                log(f"browser closed: {_first_line(exc)}")
            if browser.is_connected():
                browser.close()
    finally:
        try:
            actions, _ = stop_recording(store, session)
        except StoreAccessError as exc:
            write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, result="error", message=str(exc))
            raise SystemExit(str(exc)) from exc

    summary = summarize_recording(actions)
    log(summary + (" (interrupted)" if interrupted else ""))
    if recorder.failure is not None:
        write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, result="error", message=str(recorder.failure))
        raise SystemExit(f"Recording aborted: {recorder.failure}")
    write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, result="recorded", message=summary)
    print(summary)


def play_command(headless: bool = False) -> None:
    if not playwright_available():
        raise SystemExit("Playwright is not installed. Run: pip install playwright && playwright install chromium")
    from playwright.sync_api import sync_playwright

    store = _open_store()
    try:
        if store.is_recording():
            raise SystemExit("A recording is in progress; stop it before playing.")
        if not store.get(STORE_ACTIONS_KEY):
            raise SystemExit("Nothing recorded yet. Run: webreplay record <url>")
    except StoreAccessError as exc:
        raise SystemExit(str(exc)) from exc

    timing = load_playback_timing()
    session = ReplaySession()
    ctx = create_run_context()

    def log(message: str) -> None:
        append_log(ctx.replay_log, message)

    def on_progress(event: ProgressEvent) -> None:
        print(json.dumps(event.to_dict(), ensure_ascii=False))
        write_status(
            run_id=ctx.run_id,
            run_dir=ctx.run_dir,
            result="running",
            state="running",
            step_current=event.current,
            step_total=event.total,
        )

    log(f"run_id={ctx.run_id}")
    log(f"play store={store.path} headless={headless}")
    write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, result="running", state="running")

    with sync_playwright() as p:
        browser = None
        try:
            browser = launch_browser(p, headless=headless)
            context = browser.new_context()
        except Exception as exc:
            if browser is not None:
                browser.close()
            message = f"Browser setup failed: {_first_line(exc)}"
            log(message)
            result = PlaybackResult(status="error", message=message)
        else:
            try:
                driver = PlaywrightTabDriver(context, timeout_ms=timing.dispatch_timeout_ms)
                coordinator = TabCoordinator(
                    driver,
                    session,
                    post_load_settle_seconds=timing.post_load_settle_seconds,
                    log=log,
                )
                orchestrator = PlaybackOrchestrator(coordinator, session=session, timing=timing, log=log)
                orchestrator.add_observer(on_progress)
                result = orchestrator.run_from_store(store)
            finally:
                browser.close()

    _finish_playback(ctx, result)


def _finish_playback(ctx: Any, result: PlaybackResult) -> None:
    payload = result.to_dict()
    write_json(ctx.result_path, payload)
    append_log(ctx.replay_log, f"result={result.status} failed_steps={len(result.failed_steps())}")
    done = len(result.steps)
    write_status(
        run_id=ctx.run_id,
        run_dir=ctx.run_dir,
        result="complete" if result.ok else "error",
        message=result.message,
        step_current=done,
        step_total=result.total,
    )
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    if not result.ok:
        raise SystemExit(f"Playback failed: {result.message}")


def _first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__


def script_command() -> None:
    store = _open_store()
    try:
        script = store.load_script()
        actions = store.load_actions()
    except StoreAccessError as exc:
        raise SystemExit(str(exc)) from exc
    if not actions:
        raise SystemExit("Nothing recorded yet. Run: webreplay record <url>")
    print(script or build_script(actions))
    print(summarize_recording(actions))


def logs_command(tail_count: int) -> None:
    payload = status_payload()
    if payload.get("status") == "no-runs":
        raise SystemExit("No runs available yet.")
    run_dir = Path(payload["run_dir"])
    print("\n".join(tail_lines(run_dir / "replay.log", tail_count)))


def clear_command() -> None:
    store = _open_store()
    try:
        if store.is_recording():
            raise SystemExit("A recording is in progress; stop it before clearing.")
        store.clear_actions()
    except StoreAccessError as exc:
        raise SystemExit(str(exc)) from exc
    print("Recorded actions cleared.")


def check_command(html_file: Path) -> None:
    if not html_file.exists():
        raise SystemExit(f"Snapshot not found: {html_file}")
    store = _open_store()
    try:
        actions = store.load_actions()
    except StoreAccessError as exc:
        raise SystemExit(str(exc)) from exc
    document = SnapshotDocument.from_html(html_file.read_text(encoding="utf-8", errors="replace"))
    rows = check_snapshot(actions, document)
    for row in rows:
        print(f"{row['index']}. {row['kind']} {row['locator']} -> {row['resolution']}")
    missing = [row for row in rows if row["resolution"] == "missing"]
    print(f"{len(rows) - len(missing)}/{len(rows)} targets resolved")


def check_snapshot(actions: list[Action], document: SnapshotDocument) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for index, action in enumerate(actions, start=1):
        hints = action.hints()
        if action.locator is None and not hints.tag_name:
            continue
        if action.locator is not None and resolve(action.locator, document) is not None:
            resolution = "direct"
        elif resolve_target(action.locator, hints, document) is not None:
            resolution = "fallback"
        else:
            resolution = "missing"
        rows.append(
            {
                "index": index,
                "kind": action.kind,
                "locator": action.locator.key() if action.locator is not None else "-",
                "resolution": resolution,
            }
        )
    return rows


if __name__ == "__main__":
    main()
