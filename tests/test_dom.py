import unittest

from webreplay.dom import LiveDocument, LiveElement, SnapshotDocument
from webreplay.locator import Locator, PathStep, resolve, structural_path


def _path(*steps: tuple[str, int]) -> Locator:
    return Locator.by_structural_path([PathStep(tag, index) for tag, index in steps])


class SnapshotTreeTests(unittest.TestCase):
    def test_implied_tbody_matches_browser_paths(self) -> None:
        doc = SnapshotDocument.from_html("<table><tr><td><button>go</button></td></tr></table>")
        locator = _path(("html", 0), ("body", 0), ("table", 0), ("tbody", 0), ("tr", 0), ("td", 0), ("button", 0))
        button = resolve(locator, doc)
        self.assertIsNotNone(button)
        self.assertEqual(button.tag_name, "button")
        self.assertEqual(structural_path(button), tuple(locator.steps))

    def test_unclosed_paragraphs_become_siblings(self) -> None:
        doc = SnapshotDocument.from_html("<!doctype html><title>t</title><p>one<p><a>two</a>")
        link = resolve(_path(("html", 0), ("body", 0), ("p", 1), ("a", 0)), doc)
        self.assertIsNotNone(link)
        self.assertIs(link, doc.elements_by_tag("a")[0])

    def test_fragment_gets_head_and_body(self) -> None:
        doc = SnapshotDocument.from_html('<div id="only"></div>')
        self.assertEqual(doc.root().tag_name, "html")
        self.assertEqual([child.tag_name for child in doc.root().children()], ["head", "body"])
        self.assertEqual(doc.get_element_by_id("only").parent().tag_name, "body")
        self.assertIsNone(doc.root().parent())

    def test_attributes_are_flattened(self) -> None:
        doc = SnapshotDocument.from_html(
            '<input id="q"><select id="s" multiple></select><button id="b" class="btn  primary"></button>'
        )
        self.assertEqual(doc.get_element_by_id("q").element_type, "text")
        self.assertEqual(doc.get_element_by_id("s").element_type, "select-multiple")
        button = doc.get_element_by_id("b")
        self.assertEqual(button.element_type, "submit")
        self.assertEqual(set(button.class_name.split()), {"btn", "primary"})

    def test_non_ascii_and_quoted_ids(self) -> None:
        doc = SnapshotDocument.from_html('<p id="café">a</p><p id=\'a"b\'>b</p>')
        self.assertEqual(resolve(Locator.by_id("café"), doc).same_tag_index(), 0)
        self.assertEqual(resolve(Locator.by_id('a"b'), doc).same_tag_index(), 1)

    def test_wrappers_are_stable(self) -> None:
        doc = SnapshotDocument.from_html('<ul><li id="x">1</li></ul>')
        item = doc.get_element_by_id("x")
        self.assertIs(item.parent().children("li")[0], item)


class _Ref:
    def __init__(self, element) -> None:
        self._element = element

    def as_element(self):
        return self._element


class _LookupPage:
    def __init__(self, known: dict) -> None:
        self.known = known
        self.calls: list = []

    def evaluate_handle(self, script: str, arg=None) -> _Ref:
        self.calls.append((script, arg))
        return _Ref(self.known.get(arg))

    def query_selector(self, selector: str):
        raise AssertionError(f"id lookups must not build selectors: {selector}")


class LiveDocumentTests(unittest.TestCase):
    def test_id_is_passed_as_an_argument(self) -> None:
        handle = object()
        page = _LookupPage({"café": handle})
        doc = LiveDocument(page)

        found = doc.get_element_by_id("café")
        self.assertIsInstance(found, LiveElement)
        self.assertIs(found.handle, handle)
        self.assertIsNone(doc.get_element_by_id('a"b'))

        self.assertEqual([arg for _, arg in page.calls], ["café", 'a"b'])
        for script, _ in page.calls:
            self.assertEqual(script, "(id) => document.getElementById(id)")


if __name__ == "__main__":
    unittest.main()
