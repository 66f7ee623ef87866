"""DOM adapters the locator can resolve against: saved HTML snapshots and live pages."""

from __future__ import annotations

import re
from typing import Any, Iterator

from bs4 import BeautifulSoup, Tag

_CSS_TAG_RE = re.compile(r"^[a-z][a-z0-9-]*$")

_GET_BY_ID_JS = "(id) => document.getElementById(id)"


class SnapshotElement:
    """Element adapter over a BeautifulSoup ``Tag``."""

    def __init__(self, document: "SnapshotDocument", tag: Tag) -> None:
        self._document = document
        self.tag = tag

    def __repr__(self) -> str:
        ident = f"#{self.element_id}" if self.element_id else ""
        return f"<SnapshotElement {self.tag_name}{ident}>"

    def _attr(self, name: str) -> str:
        value = self.tag.get(name)
        if value is None:
            return ""
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    @property
    def tag_name(self) -> str:
        return (self.tag.name or "").lower()

    @property
    def element_id(self) -> str:
        return self._attr("id")

    @property
    def class_name(self) -> str:
        return self._attr("class")

    @property
    def element_type(self) -> str:
        explicit = self._attr("type").strip().lower()
        if self.tag_name == "input":
            return explicit or "text"
        if self.tag_name == "button":
            return explicit or "submit"
        if self.tag_name == "select":
            return "select-multiple" if self.tag.has_attr("multiple") else "select-one"
        if self.tag_name == "textarea":
            return "textarea"
        return explicit

    def parent(self) -> "SnapshotElement | None":
        parent = self.tag.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            return None
        return self._document._wrap(parent)

    def children(self, tag_name: str | None = None) -> list["SnapshotElement"]:
        return [
            self._document._wrap(child)
            for child in self.tag.children
            if isinstance(child, Tag) and (tag_name is None or child.name == tag_name)
        ]

    def same_tag_index(self) -> int:
        return sum(
            1 for sibling in self.tag.previous_siblings if isinstance(sibling, Tag) and sibling.name == self.tag.name
        )

    def iter(self) -> Iterator["SnapshotElement"]:
        yield self
        for tag in self.tag.find_all(True):
            yield self._document._wrap(tag)


class SnapshotDocument:
    """Saved page HTML parsed with the HTML5 tree construction rules a browser applies.

    ``html5lib`` supplies the implied ``<head>``, ``<body>`` and ``<tbody>``
    elements and closes ``<p>`` the way the live DOM does, so structural paths
    recorded in a browser resolve against the saved copy of the same page.
    """

    def __init__(self, soup: BeautifulSoup) -> None:
        self._soup = soup
        self._elements: dict[int, SnapshotElement] = {}

    @classmethod
    def from_html(cls, html: str) -> "SnapshotDocument":
        return cls(BeautifulSoup(html, "html5lib"))

    def _wrap(self, tag: Tag) -> SnapshotElement:
        element = self._elements.get(id(tag))
        if element is None:
            element = SnapshotElement(self, tag)
            self._elements[id(tag)] = element
        return element

    def root(self) -> SnapshotElement | None:
        for child in self._soup.children:
            if isinstance(child, Tag):
                return self._wrap(child)
        return None

    def iter(self) -> Iterator[SnapshotElement]:
        root = self.root()
        if root is not None:
            yield from root.iter()

    def get_element_by_id(self, element_id: str) -> SnapshotElement | None:
        tag = self._soup.find(attrs={"id": element_id})
        return self._wrap(tag) if isinstance(tag, Tag) else None

    def elements_by_tag(self, tag_name: str) -> list[SnapshotElement]:
        return [self._wrap(tag) for tag in self._soup.find_all(tag_name.lower())]


_DESCRIBE_JS = """
(el) => {
  let index = 0;
  let sibling = el;
  while ((sibling = sibling.previousElementSibling)) {
    if (sibling.tagName === el.tagName) index++;
  }
  const cls = typeof el.className === 'string' ? el.className : (el.getAttribute('class') || '');
  return {
    tagName: el.tagName.toLowerCase(),
    id: el.id || '',
    className: cls || '',
    type: el.type ? String(el.type) : '',
    index,
  };
}
"""


class LiveElement:
    """Element adapter over a Playwright ``ElementHandle``."""

    def __init__(self, handle: Any) -> None:
        self.handle = handle
        self._info: dict[str, Any] | None = None

    def _describe(self) -> dict[str, Any]:
        if self._info is None:
            self._info = dict(self.handle.evaluate(_DESCRIBE_JS) or {})
        return self._info

    @property
    def tag_name(self) -> str:
        return str(self._describe().get("tagName", ""))

    @property
    def element_id(self) -> str:
        return str(self._describe().get("id", ""))

    @property
    def class_name(self) -> str:
        return str(self._describe().get("className", ""))

    @property
    def element_type(self) -> str:
        return str(self._describe().get("type", ""))

    def same_tag_index(self) -> int:
        return int(self._describe().get("index", 0) or 0)

    def parent(self) -> "LiveElement | None":
        handle = self.handle.evaluate_handle("(el) => el.parentElement").as_element()
        return LiveElement(handle) if handle is not None else None

    def children(self, tag_name: str | None = None) -> list["LiveElement"]:
        if tag_name and _CSS_TAG_RE.match(tag_name):
            return [LiveElement(h) for h in self.handle.query_selector_all(f":scope > {tag_name}")]
        out = [LiveElement(h) for h in self.handle.query_selector_all(":scope > *")]
        if tag_name:
            out = [child for child in out if child.tag_name == tag_name]
        return out


class LiveDocument:
    """Document adapter over a Playwright ``Page``."""

    def __init__(self, page: Any) -> None:
        self.page = page

    def root(self) -> LiveElement | None:
        handle = self.page.query_selector(":root")
        return LiveElement(handle) if handle is not None else None

    def get_element_by_id(self, element_id: str) -> LiveElement | None:
        # The id travels as an argument, never inside a selector string.
        handle = self.page.evaluate_handle(_GET_BY_ID_JS, element_id).as_element()
        return LiveElement(handle) if handle is not None else None

    def elements_by_tag(self, tag_name: str) -> list[LiveElement]:
        name = tag_name.lower()
        if not _CSS_TAG_RE.match(name):
            return []
        return [LiveElement(h) for h in self.page.query_selector_all(name)]
