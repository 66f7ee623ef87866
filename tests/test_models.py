import json
import unittest

from webreplay.locator import Locator, ParentContext, PathStep
from webreplay.models import (
    ChangeAction,
    ClickAction,
    FormSubmitAction,
    InputAction,
    NavigationAction,
    ScrollAction,
    TabCreateAction,
    TabFocusAction,
    parse_action,
)


def _sample_actions() -> list:
    form_path = Locator.by_structural_path([PathStep("html", 0), PathStep("body", 0), PathStep("form", 0)])
    return [
        ClickAction(
            captured_at_ms=10.5,
            page_url="https://example.test/",
            locator=Locator.by_id("go"),
            tag_name="button",
            element_type="submit",
            element_id="go",
            parent_context=(ParentContext(tag_name="div", index=0, class_name="bar"),),
        ),
        InputAction(
            captured_at_ms=11.0,
            page_url="https://example.test/",
            locator=Locator.by_id("q"),
            tag_name="input",
            element_id="q",
            delta_kind="backspaceFromEnd",
            delta_payload=2,
            cursor_position=3,
            value="abc",
        ),
        ChangeAction(
            captured_at_ms=12.0,
            page_url="https://example.test/",
            locator=Locator.by_id("agree"),
            tag_name="input",
            element_type="checkbox",
            element_id="agree",
            value=True,
        ),
        ScrollAction(captured_at_ms=13.0, page_url="https://example.test/", x=0, y=480),
        NavigationAction(
            captured_at_ms=14.0,
            page_url="https://example.test/next",
            url="https://example.test/next",
            from_url="https://example.test/",
        ),
        FormSubmitAction(captured_at_ms=15.0, page_url="https://example.test/next", locator=form_path),
        TabCreateAction(captured_at_ms=16.0, url="https://other.test/", opener_tab_ref="tab-1", tab_ref="tab-2"),
        TabFocusAction(captured_at_ms=17.0, tab_ref="tab-1"),
    ]


class ActionSerializationTests(unittest.TestCase):
    def test_actions_survive_a_json_round_trip(self) -> None:
        for action in _sample_actions():
            payload = json.loads(json.dumps(action.to_dict()))
            self.assertEqual(parse_action(payload), action, msg=action.kind)

    def test_serialized_shape_uses_camel_case_keys(self) -> None:
        payload = _sample_actions()[0].to_dict()
        self.assertEqual(payload["kind"], "click")
        self.assertEqual(payload["locator"], {"byId": "go"})
        self.assertEqual(payload["capturedAtMs"], 10.5)
        self.assertEqual(payload["parentContext"], [{"tagName": "div", "id": None, "className": "bar", "index": 0}])

    def test_hints_expose_recorded_attributes(self) -> None:
        hints = _sample_actions()[0].hints()
        self.assertEqual(hints.tag_name, "button")
        self.assertEqual(hints.element_id, "go")
        self.assertEqual(hints.element_type, "submit")
        self.assertEqual(len(hints.parent_context), 1)
        self.assertEqual(_sample_actions()[3].hints().tag_name, "")


class ParseActionTests(unittest.TestCase):
    def _base(self, **extra) -> dict:
        payload = {"kind": "input", "capturedAtMs": 1, "pageUrl": "https://example.test/", "locator": {"byId": "q"}}
        payload.update(extra)
        return payload

    def test_unknown_kind_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            parse_action({"kind": "hover", "capturedAtMs": 1})

    def test_non_object_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            parse_action(["click"])

    def test_timestamp_is_required(self) -> None:
        with self.assertRaises(ValueError):
            parse_action({"kind": "scroll", "x": 0, "y": 0})

    def test_backspace_count_accepts_digit_strings(self) -> None:
        action = parse_action(self._base(tagName="INPUT", deltaKind="backspaceFromEnd", deltaPayload="3"))
        self.assertEqual(action.delta_payload, 3)
        self.assertEqual(action.tag_name, "input")

    def test_text_delta_needs_string_payload(self) -> None:
        with self.assertRaises(ValueError):
            parse_action(self._base(tagName="input", deltaKind="insertion", deltaPayload=3))
        with self.assertRaises(ValueError):
            parse_action(self._base(tagName="input", deltaKind="paste", deltaPayload="x"))

    def test_form_submit_requires_locator(self) -> None:
        with self.assertRaises(ValueError):
            parse_action({"kind": "formSubmit", "capturedAtMs": 1, "locator": None})

    def test_change_value_must_be_bool_or_string(self) -> None:
        with self.assertRaises(ValueError):
            parse_action(
                {"kind": "change", "capturedAtMs": 1, "tagName": "select", "value": 4, "locator": {"byId": "s"}}
            )

    def test_parent_context_is_sanitized(self) -> None:
        payload = {
            "kind": "click",
            "capturedAtMs": 1,
            "tagName": "a",
            "locator": {"byStructuralPath": [["html", 0]]},
            "parentContext": [{"tagName": "li", "index": 2, "element": {"live": True}, "children": []}],
        }
        action = parse_action(payload)
        self.assertEqual(action.parent_context, (ParentContext(tag_name="li", index=2),))
        self.assertNotIn("element", action.to_dict()["parentContext"][0])


if __name__ == "__main__":
    unittest.main()
