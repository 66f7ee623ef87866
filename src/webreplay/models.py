"""Recorded action records and strict parsing of their serialized form."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from webreplay.constants import ACTION_KINDS, DELTA_KINDS
from webreplay.locator import ElementHints, Locator, ParentContext


@dataclass(frozen=True)
class Action:
    kind: ClassVar[str] = ""

    captured_at_ms: float = 0.0
    page_url: str = ""
    locator: Locator | None = None

    def hints(self) -> ElementHints:
        return ElementHints(
            tag_name=str(getattr(self, "tag_name", "") or ""),
            element_id=getattr(self, "element_id", None),
            class_name=getattr(self, "class_name", None),
            element_type=getattr(self, "element_type", None),
            parent_context=tuple(getattr(self, "parent_context", ()) or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind,
            "locator": self.locator.to_dict() if self.locator is not None else None,
            "capturedAtMs": self.captured_at_ms,
            "pageUrl": self.page_url,
        }
        payload.update(self._fields_to_dict())
        return payload

    def _fields_to_dict(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class ClickAction(Action):
    kind: ClassVar[str] = "click"

    tag_name: str = ""
    element_type: str | None = None
    element_id: str | None = None
    class_name: str | None = None
    parent_context: tuple[ParentContext, ...] = ()

    def _fields_to_dict(self) -> dict[str, Any]:
        return {
            "tagName": self.tag_name,
            "elementType": self.element_type,
            "elementId": self.element_id,
            "className": self.class_name,
            "parentContext": [ctx.to_dict() for ctx in self.parent_context],
        }


@dataclass(frozen=True)
class InputAction(Action):
    kind: ClassVar[str] = "input"

    tag_name: str = ""
    element_id: str | None = None
    class_name: str | None = None
    delta_kind: str = "replace"
    delta_payload: str | int = ""
    cursor_position: int | None = None
    value: str | None = None

    def _fields_to_dict(self) -> dict[str, Any]:
        return {
            "tagName": self.tag_name,
            "elementId": self.element_id,
            "className": self.class_name,
            "deltaKind": self.delta_kind,
            "deltaPayload": self.delta_payload,
            "cursorPosition": self.cursor_position,
            "value": self.value,
        }


@dataclass(frozen=True)
class ChangeAction(Action):
    kind: ClassVar[str] = "change"

    tag_name: str = ""
    element_type: str | None = None
    element_id: str | None = None
    class_name: str | None = None
    value: bool | str = ""

    def _fields_to_dict(self) -> dict[str, Any]:
        return {
            "tagName": self.tag_name,
            "elementType": self.element_type,
            "elementId": self.element_id,
            "className": self.class_name,
            "value": self.value,
        }


@dataclass(frozen=True)
class ScrollAction(Action):
    kind: ClassVar[str] = "scroll"

    x: float = 0.0
    y: float = 0.0

    def _fields_to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class NavigationAction(Action):
    kind: ClassVar[str] = "navigation"

    url: str = ""
    from_url: str | None = None

    def _fields_to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "fromUrl": self.from_url}


@dataclass(frozen=True)
class FormSubmitAction(Action):
    kind: ClassVar[str] = "formSubmit"

    tag_name: str = "form"
    element_id: str | None = None
    class_name: str | None = None

    def _fields_to_dict(self) -> dict[str, Any]:
        return {
            "tagName": self.tag_name,
            "elementId": self.element_id,
            "className": self.class_name,
        }


@dataclass(frozen=True)
class TabCreateAction(Action):
    kind: ClassVar[str] = "tabCreate"

    url: str | None = None
    opener_tab_ref: str | None = None
    tab_ref: str | None = None

    def _fields_to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "openerTabRef": self.opener_tab_ref, "tabRef": self.tab_ref}


@dataclass(frozen=True)
class TabFocusAction(Action):
    kind: ClassVar[str] = "tabFocus"

    tab_ref: str = ""

    def _fields_to_dict(self) -> dict[str, Any]:
        return {"tabRef": self.tab_ref}


def parse_action(payload: dict[str, Any]) -> Action:
    if not isinstance(payload, dict):
        raise ValueError("action must be an object")
    kind = payload.get("kind")
    if kind not in ACTION_KINDS:
        raise ValueError(f"Invalid action kind {kind!r}. Must be one of {list(ACTION_KINDS)}")
    common: dict[str, Any] = {
        "captured_at_ms": _expect_number(payload, "capturedAtMs"),
        "page_url": _expect_optional_str(payload, "pageUrl") or "",
        "locator": Locator.from_dict(payload["locator"]) if payload.get("locator") else None,
    }
    if kind == "click":
        return ClickAction(
            **common,
            tag_name=_expect_str(payload, "tagName").lower(),
            element_type=_expect_optional_str(payload, "elementType"),
            element_id=_expect_optional_str(payload, "elementId"),
            class_name=_expect_optional_str(payload, "className"),
            parent_context=_expect_parent_context(payload),
        )
    if kind == "input":
        delta_kind = _expect_str(payload, "deltaKind")
        if delta_kind not in DELTA_KINDS:
            raise ValueError(f"Invalid deltaKind {delta_kind!r}")
        delta_payload = payload.get("deltaPayload")
        if delta_kind == "backspaceFromEnd":
            if isinstance(delta_payload, str) and delta_payload.isdigit():
                delta_payload = int(delta_payload)
            if isinstance(delta_payload, bool) or not isinstance(delta_payload, int):
                raise ValueError("'deltaPayload' must be a count for backspaceFromEnd")
        elif not isinstance(delta_payload, str):
            raise ValueError("'deltaPayload' must be a string")
        return InputAction(
            **common,
            tag_name=_expect_str(payload, "tagName").lower(),
            element_id=_expect_optional_str(payload, "elementId"),
            class_name=_expect_optional_str(payload, "className"),
            delta_kind=delta_kind,
            delta_payload=delta_payload,
            cursor_position=_expect_optional_int(payload, "cursorPosition"),
            value=_expect_optional_str(payload, "value"),
        )
    if kind == "change":
        value = payload.get("value")
        if not isinstance(value, (bool, str)):
            raise ValueError("'value' must be a boolean or a string")
        return ChangeAction(
            **common,
            tag_name=_expect_str(payload, "tagName").lower(),
            element_type=_expect_optional_str(payload, "elementType"),
            element_id=_expect_optional_str(payload, "elementId"),
            class_name=_expect_optional_str(payload, "className"),
            value=value,
        )
    if kind == "scroll":
        return ScrollAction(**common, x=_expect_number(payload, "x"), y=_expect_number(payload, "y"))
    if kind == "navigation":
        return NavigationAction(
            **common,
            url=_expect_str(payload, "url"),
            from_url=_expect_optional_str(payload, "fromUrl"),
        )
    if kind == "formSubmit":
        if common["locator"] is None:
            raise ValueError("formSubmit requires a locator")
        return FormSubmitAction(
            **common,
            tag_name=(_expect_optional_str(payload, "tagName") or "form").lower(),
            element_id=_expect_optional_str(payload, "elementId"),
            class_name=_expect_optional_str(payload, "className"),
        )
    if kind == "tabCreate":
        return TabCreateAction(
            **common,
            url=_expect_optional_str(payload, "url"),
            opener_tab_ref=_expect_optional_str(payload, "openerTabRef"),
            tab_ref=_expect_optional_str(payload, "tabRef"),
        )
    return TabFocusAction(**common, tab_ref=_expect_str(payload, "tabRef"))


def _expect_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{key}' must be a non-empty string")
    return value


def _expect_optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _expect_number(payload: dict[str, Any], key: str) -> float:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return float(value)


def _expect_optional_int(payload: dict[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer")
    return value


def _expect_parent_context(payload: dict[str, Any]) -> tuple[ParentContext, ...]:
    value = payload.get("parentContext") or []
    if not isinstance(value, list):
        raise ValueError("'parentContext' must be a list")
    return tuple(ParentContext.from_dict(entry) for entry in value)
