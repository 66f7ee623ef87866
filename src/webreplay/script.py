"""Human-readable transcript of a recording."""

from __future__ import annotations

from typing import Iterable

from webreplay.constants import CHECKABLE_TYPES
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


def describe_action(action: Action) -> str:
    if isinstance(action, ScrollAction):
        return f"Scroll to position ({round(action.x)}, {round(action.y)})"
    if isinstance(action, ClickAction):
        text = f"Click on {action.tag_name}"
        if action.element_id:
            text += f' with ID "{action.element_id}"'
        if action.parent_context:
            parent = action.parent_context[0]
            if parent.list_item_count is not None:
                text += f" in {(parent.list_type or 'ul').lower()} list with {parent.list_item_count} items"
            elif parent.table_rows is not None:
                text += f" in table with {parent.table_rows} rows and {parent.table_cols or 0} columns"
            elif parent.element_id:
                text += f' within {parent.tag_name} with ID "{parent.element_id}"'
        return text
    if isinstance(action, InputAction):
        typed = action.value if action.value is not None else str(action.delta_payload)
        suffix = f' with ID "{action.element_id}"' if action.element_id else ""
        return f'Type "{typed}" into {action.tag_name}{suffix}'
    if isinstance(action, ChangeAction):
        if action.element_type in CHECKABLE_TYPES:
            return f"Set {action.tag_name} to {'checked' if action.value else 'unchecked'}"
        return f'Change {action.tag_name} value to "{action.value}"'
    if isinstance(action, NavigationAction):
        return f'Navigate to "{action.url}"'
    if isinstance(action, FormSubmitAction):
        return "Submit form"
    if isinstance(action, TabCreateAction):
        return "Create new tab" + (f' and navigate to "{action.url}"' if action.url else "")
    if isinstance(action, TabFocusAction):
        return f"Switch to tab {action.tab_ref}"
    return f"Perform {action.kind} action"


def build_script(actions: Iterable[Action]) -> str:
    return "\n".join(f"{pos}. {describe_action(action)}" for pos, action in enumerate(actions, start=1))


def summarize_recording(actions: list[Action]) -> str:
    if not actions:
        return "0 actions recorded"
    span_s = max(0.0, actions[-1].captured_at_ms - actions[0].captured_at_ms) / 1000.0
    noun = "action" if len(actions) == 1 else "actions"
    return f"{len(actions)} {noun} recorded over {span_s:.1f}s"
