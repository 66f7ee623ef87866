"""Durable element locators, parent-context hints and resolution.

Resolution works against any DOM adapter exposing the small protocol below
(see ``webreplay.dom`` for the snapshot and live Playwright implementations):

element:  ``tag_name``, ``element_id``, ``class_name``, ``element_type``,
          ``parent()``, ``children(tag_name=None)``, ``same_tag_index()``
document: ``root()``, ``get_element_by_id(element_id)``, ``elements_by_tag(tag_name)``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from webreplay.constants import PARENT_CONTEXT_DEPTH, UNSERIALIZABLE_CONTEXT_KEYS


@dataclass(frozen=True)
class PathStep:
    tag_name: str
    index: int


@dataclass(frozen=True)
class Locator:
    element_id: str = ""
    steps: tuple[PathStep, ...] = ()

    @classmethod
    def by_id(cls, element_id: str) -> "Locator":
        if not element_id:
            raise ValueError("byId locator needs a non-empty id")
        return cls(element_id=element_id)

    @classmethod
    def by_structural_path(cls, steps: list[PathStep] | tuple[PathStep, ...]) -> "Locator":
        if not steps:
            raise ValueError("byStructuralPath locator needs at least one step")
        return cls(steps=tuple(steps))

    @property
    def is_by_id(self) -> bool:
        return bool(self.element_id)

    def key(self) -> str:
        if self.is_by_id:
            return f"id:{self.element_id}"
        return "".join(f"/{step.tag_name}[{step.index}]" for step in self.steps)

    def to_xpath(self) -> str:
        if self.is_by_id:
            return f"//*[@id={_xpath_literal(self.element_id)}]"
        return "".join(f"/{step.tag_name}[{step.index + 1}]" for step in self.steps)

    def to_dict(self) -> dict[str, Any]:
        if self.is_by_id:
            return {"byId": self.element_id}
        return {"byStructuralPath": [[step.tag_name, step.index] for step in self.steps]}

    @classmethod
    def from_dict(cls, payload: Any) -> "Locator":
        if not isinstance(payload, dict):
            raise ValueError("locator must be an object")
        if "byId" in payload:
            element_id = payload["byId"]
            if not isinstance(element_id, str):
                raise ValueError("'byId' must be a string")
            return cls.by_id(element_id)
        raw_steps = payload.get("byStructuralPath")
        if not isinstance(raw_steps, list):
            raise ValueError("locator needs 'byId' or 'byStructuralPath'")
        steps: list[PathStep] = []
        for item in raw_steps:
            if (
                not isinstance(item, (list, tuple))
                or len(item) != 2
                or not isinstance(item[0], str)
                or isinstance(item[1], bool)
                or not isinstance(item[1], int)
                or item[1] < 0
            ):
                raise ValueError(f"invalid structural path step: {item!r}")
            steps.append(PathStep(tag_name=item[0].lower(), index=item[1]))
        return cls.by_structural_path(steps)


@dataclass(frozen=True)
class ParentContext:
    """Plain-data snapshot of one ancestor, used only to disambiguate."""

    tag_name: str
    index: int
    element_id: str | None = None
    class_name: str | None = None
    list_item_count: int | None = None
    list_type: str | None = None
    table_rows: int | None = None
    table_cols: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "tagName": self.tag_name,
            "id": self.element_id,
            "className": self.class_name,
            "index": self.index,
        }
        if self.list_item_count is not None:
            payload["listContext"] = {"itemCount": self.list_item_count, "listType": self.list_type}
        if self.table_rows is not None:
            payload["tableContext"] = {"rows": self.table_rows, "cols": self.table_cols}
        return payload

    @classmethod
    def from_dict(cls, payload: Any) -> "ParentContext":
        if not isinstance(payload, dict):
            raise ValueError("parent context entry must be an object")
        clean = {k: v for k, v in payload.items() if k not in UNSERIALIZABLE_CONTEXT_KEYS}
        tag_name = clean.get("tagName")
        index = clean.get("index", 0)
        if not isinstance(tag_name, str) or not tag_name:
            raise ValueError("parent context entry needs 'tagName'")
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValueError("parent context 'index' must be an integer")
        list_ctx = clean.get("listContext") if isinstance(clean.get("listContext"), dict) else {}
        table_ctx = clean.get("tableContext") if isinstance(clean.get("tableContext"), dict) else {}
        return cls(
            tag_name=tag_name.lower(),
            index=index,
            element_id=_optional_str(clean.get("id")),
            class_name=_optional_str(clean.get("className")),
            list_item_count=_optional_int(list_ctx.get("itemCount")),
            list_type=_optional_str(list_ctx.get("listType")),
            table_rows=_optional_int(table_ctx.get("rows")),
            table_cols=_optional_int(table_ctx.get("cols")),
        )


@dataclass(frozen=True)
class ElementHints:
    """Recorded element attributes the fallback chain can search by."""

    tag_name: str = ""
    element_id: str | None = None
    class_name: str | None = None
    element_type: str | None = None
    parent_context: tuple[ParentContext, ...] = ()


def structural_path(element: Any) -> tuple[PathStep, ...]:
    steps: list[PathStep] = []
    current = element
    while current is not None:
        steps.append(PathStep(tag_name=current.tag_name, index=current.same_tag_index()))
        current = current.parent()
    steps.reverse()
    return tuple(steps)


def locator_for(element: Any) -> Locator:
    if element.element_id:
        return Locator.by_id(element.element_id)
    return Locator.by_structural_path(structural_path(element))


def parent_context_for(element: Any, depth: int = PARENT_CONTEXT_DEPTH) -> tuple[ParentContext, ...]:
    out: list[ParentContext] = []
    parent = element.parent()
    while parent is not None and len(out) < depth:
        list_count = list_type = rows = cols = None
        if parent.tag_name in ("ul", "ol"):
            list_count = len(parent.children())
            list_type = parent.tag_name
        elif parent.tag_name == "table":
            rows, cols = _table_shape(parent)
        out.append(
            ParentContext(
                tag_name=parent.tag_name,
                index=parent.same_tag_index(),
                element_id=parent.element_id or None,
                class_name=parent.class_name or None,
                list_item_count=list_count,
                list_type=list_type,
                table_rows=rows,
                table_cols=cols,
            )
        )
        parent = parent.parent()
    return tuple(out)


def resolve(locator: Locator, document: Any) -> Any | None:
    if locator.is_by_id:
        return document.get_element_by_id(locator.element_id)
    current = document.root()
    if current is None:
        return None
    first, rest = locator.steps[0], locator.steps[1:]
    if current.tag_name != first.tag_name or first.index != 0:
        return None
    for step in rest:
        candidates = current.children(step.tag_name)
        if step.index >= len(candidates):
            return None
        current = candidates[step.index]
    return current


def resolve_target(locator: Locator | None, hints: ElementHints, document: Any) -> Any | None:
    """Resolve with the documented fallback order; None when every stage misses."""
    if locator is not None:
        found = resolve(locator, document)
        if found is not None:
            return found
    if hints.element_id:
        found = document.get_element_by_id(hints.element_id)
        if found is not None:
            return found
    if not hints.tag_name:
        return None
    if hints.class_name or hints.parent_context:
        wanted = _class_tokens(hints.class_name)
        for candidate in document.elements_by_tag(hints.tag_name):
            if wanted and not wanted.issubset(_class_tokens(candidate.class_name)):
                continue
            if matches_parent_context(candidate, hints.parent_context):
                return candidate
    if hints.element_type:
        for candidate in document.elements_by_tag(hints.tag_name):
            if candidate.element_type == hints.element_type:
                return candidate
    return None


def matches_parent_context(element: Any, context: tuple[ParentContext, ...] | list[ParentContext]) -> bool:
    current = element.parent()
    for level in context:
        if current is None:
            return False
        if current.tag_name != level.tag_name:
            return False
        if level.element_id and current.element_id != level.element_id:
            return False
        if level.class_name and current.class_name != level.class_name:
            return False
        if current.same_tag_index() != level.index:
            return False
        current = current.parent()
    return True


def _table_shape(table: Any) -> tuple[int, int]:
    rows: list[Any] = []
    for child in table.children():
        if child.tag_name == "tr":
            rows.append(child)
        elif child.tag_name in ("thead", "tbody", "tfoot"):
            rows.extend(child.children("tr"))
    if not rows:
        return 0, 0
    cols = sum(1 for cell in rows[0].children() if cell.tag_name in ("td", "th"))
    return len(rows), cols


def _class_tokens(class_name: str | None) -> set[str]:
    return set(str(class_name or "").split())


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    return value


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {type(value).__name__}")
    return value


def _xpath_literal(value: str) -> str:
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"
