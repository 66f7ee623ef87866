"""Action store and run artifact helpers."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from webreplay.constants import STORE_ACTIONS_KEY, STORE_RECORDING_KEY, STORE_SCRIPT_KEY
from webreplay.errors import StoreAccessError
from webreplay.models import Action, parse_action


RUNS_DIR = Path("runs")
STATUS_PATH = RUNS_DIR / "status.json"


class ActionStore:
    """Key/value blobs persisted as one JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoreAccessError(f"Cannot read action store {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StoreAccessError(f"Action store {self.path} does not hold an object")
        return payload

    def _write(self, payload: dict[str, Any]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, ensure_ascii=False)
                fh.write("\n")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreAccessError(f"Cannot write action store {self.path}: {exc}") from exc

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def update(self, values: dict[str, Any]) -> None:
        payload = self._read()
        payload.update(values)
        self._write(payload)

    def is_recording(self) -> bool:
        return bool(self.get(STORE_RECORDING_KEY, False))

    def set_recording(self, recording: bool) -> None:
        self.update({STORE_RECORDING_KEY: bool(recording)})

    def load_actions(self) -> list[Action]:
        raw = self.get(STORE_ACTIONS_KEY, [])
        if not isinstance(raw, list):
            raise StoreAccessError(f"'{STORE_ACTIONS_KEY}' in {self.path} is not a list")
        actions: list[Action] = []
        for pos, item in enumerate(raw, start=1):
            try:
                actions.append(parse_action(item))
            except ValueError as exc:
                raise StoreAccessError(f"Stored action #{pos} is invalid: {exc}") from exc
        return actions

    def append_action(self, action: Action) -> None:
        payload = self._read()
        actions = payload.get(STORE_ACTIONS_KEY)
        if not isinstance(actions, list):
            actions = []
        actions.append(action.to_dict())
        payload[STORE_ACTIONS_KEY] = actions
        self._write(payload)

    def clear_actions(self) -> None:
        self.update({STORE_ACTIONS_KEY: [], STORE_SCRIPT_KEY: ""})

    def save_script(self, script: str) -> None:
        self.update({STORE_SCRIPT_KEY: script})

    def load_script(self) -> str:
        return str(self.get(STORE_SCRIPT_KEY, "") or "")


@dataclass(frozen=True)
class RunContext:
    run_id: str
    run_dir: Path
    replay_log: Path
    result_path: Path


def create_run_context() -> RunContext:
    RUNS_DIR.mkdir(parents=True, exist_ok=True)
    run_dir: Path | None = None
    run_id = ""
    for attempt in range(100):
        base = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        suffix = f"-{attempt:02d}" if attempt else ""
        run_id = f"{base}{suffix}"
        candidate = RUNS_DIR / run_id
        if candidate.exists():
            continue
        candidate.mkdir(parents=True, exist_ok=False)
        run_dir = candidate
        break
    if run_dir is None:
        raise RuntimeError("Could not allocate unique run directory")
    return RunContext(
        run_id=run_id,
        run_dir=run_dir,
        replay_log=run_dir / "replay.log",
        result_path=run_dir / "result.json",
    )


def append_log(path: Path, message: str) -> None:
    stamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"{stamp} {message.rstrip()}\n")


def write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def write_status(
    *,
    run_id: str,
    run_dir: Path,
    result: str,
    state: str = "completed",
    message: str = "",
    step_current: int | None = None,
    step_total: int | None = None,
) -> None:
    payload: dict[str, Any] = {
        "run_id": run_id,
        "run_dir": str(run_dir),
        "result": result,
        "state": state,
        "updated_at_utc": datetime.now(timezone.utc).isoformat(),
    }
    if message:
        payload["message"] = message
    if step_current is not None:
        payload["step_current"] = step_current
    if step_total is not None:
        payload["step_total"] = step_total
        if step_total > 0 and step_current is not None:
            payload["progress"] = f"{step_current}/{step_total}"
    write_json(STATUS_PATH, payload)


def status_payload() -> dict[str, Any]:
    if not STATUS_PATH.exists():
        return {"status": "no-runs"}
    with STATUS_PATH.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def tail_lines(path: Path, line_count: int) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as fh:
        lines = fh.readlines()
    return [line.rstrip("\n") for line in lines[-line_count:]]
