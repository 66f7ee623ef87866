"""Minimal edit deltas between successive observed values of one text field."""

from __future__ import annotations

from dataclasses import dataclass

INSERTION = "insertion"
DELETION = "deletion"
BACKSPACE_FROM_END = "backspaceFromEnd"
REPLACE = "replace"


@dataclass(frozen=True)
class Delta:
    kind: str
    payload: str | int


def diff(previous: str, current: str) -> Delta | None:
    """Classify the edit that turned ``previous`` into ``current``.

    Returns None when the value did not change.
    """
    previous = previous or ""
    current = current or ""
    if current == previous:
        return None
    if len(current) > len(previous) and current.startswith(previous):
        return Delta(INSERTION, current[len(previous):])
    if len(current) < len(previous):
        if previous[: len(current)] == current:
            return Delta(BACKSPACE_FROM_END, len(previous) - len(current))
        # Edit shape is ambiguous (mid-string or selection delete).
        return Delta(DELETION, previous)
    return Delta(REPLACE, current)


def apply_delta(
    live_value: str,
    kind: str,
    payload: str | int,
    cursor_position: int | None = None,
    recorded_value: str | None = None,
) -> tuple[str, int]:
    """Apply a recorded delta to a field's live value.

    Returns the new value and the cursor position to restore.
    """
    live_value = live_value or ""
    if kind == INSERTION:
        new_value = live_value + str(payload)
    elif kind == BACKSPACE_FROM_END:
        count = int(payload)
        if count < 0:
            raise ValueError("backspace count must be non-negative")
        new_value = live_value[: max(0, len(live_value) - count)]
    elif kind == DELETION:
        new_value = recorded_value if recorded_value is not None else str(payload)
    elif kind == REPLACE:
        new_value = str(payload)
    else:
        raise ValueError(f"Unknown delta kind: {kind}")
    if cursor_position is None:
        cursor = len(new_value)
    else:
        cursor = max(0, min(len(new_value), int(cursor_position)))
    return new_value, cursor
