import unittest

from webreplay.locator import Locator, ParentContext
from webreplay.models import (
    ChangeAction,
    ClickAction,
    FormSubmitAction,
    InputAction,
    NavigationAction,
    ScrollAction,
    TabCreateAction,
    TabFocusAction,
)
from webreplay.script import build_script, describe_action, summarize_recording


class DescribeActionTests(unittest.TestCase):
    def test_click_mentions_id_and_nearest_context(self) -> None:
        in_list = ClickAction(
            tag_name="a",
            parent_context=(ParentContext(tag_name="ul", index=0, list_item_count=5, list_type="UL"),),
        )
        in_table = ClickAction(
            tag_name="td",
            parent_context=(ParentContext(tag_name="table", index=0, table_rows=3, table_cols=2),),
        )
        in_panel = ClickAction(
            tag_name="button",
            element_id="save",
            parent_context=(ParentContext(tag_name="div", index=0, element_id="panel"),),
        )
        self.assertEqual(describe_action(in_list), "Click on a in ul list with 5 items")
        self.assertEqual(describe_action(in_table), "Click on td in table with 3 rows and 2 columns")
        self.assertEqual(describe_action(in_panel), 'Click on button with ID "save" within div with ID "panel"')

    def test_other_kinds(self) -> None:
        cases = [
            (ScrollAction(x=10.4, y=299.6), "Scroll to position (10, 300)"),
            (
                InputAction(tag_name="input", element_id="q", delta_kind="insertion", delta_payload="o", value="hello"),
                'Type "hello" into input with ID "q"',
            ),
            (ChangeAction(tag_name="input", element_type="checkbox", value=False), "Set input to unchecked"),
            (ChangeAction(tag_name="select", element_type="select-one", value="pro"), 'Change select value to "pro"'),
            (NavigationAction(url="https://a.test/b"), 'Navigate to "https://a.test/b"'),
            (FormSubmitAction(locator=Locator.by_id("f")), "Submit form"),
            (TabCreateAction(), "Create new tab"),
            (TabCreateAction(url="https://b.test/"), 'Create new tab and navigate to "https://b.test/"'),
            (TabFocusAction(tab_ref="tab-2"), "Switch to tab tab-2"),
        ]
        for action, expected in cases:
            self.assertEqual(describe_action(action), expected)


class BuildScriptTests(unittest.TestCase):
    def test_numbered_lines(self) -> None:
        script = build_script([ScrollAction(x=0, y=100), FormSubmitAction(locator=Locator.by_id("f"))])
        self.assertEqual(script, "1. Scroll to position (0, 100)\n2. Submit form")
        self.assertEqual(build_script([]), "")

    def test_summary_spans_capture_times(self) -> None:
        actions = [ScrollAction(captured_at_ms=1000.0), ScrollAction(captured_at_ms=4300.0)]
        self.assertEqual(summarize_recording(actions), "2 actions recorded over 3.3s")
        self.assertEqual(summarize_recording(actions[:1]), "1 action recorded over 0.0s")
        self.assertEqual(summarize_recording([]), "0 actions recorded")


if __name__ == "__main__":
    unittest.main()
