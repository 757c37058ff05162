from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(TESTS_DIR.parent / "src"))

from sankeysvg.accessors import (
    CATEGORY20,
    Palette,
    element_style_class,
    link_color,
    link_title,
    link_type_title,
    link_value,
    node_title,
    node_value_text,
)
from sankeysvg.errors import InvalidInput
from sankeysvg.models import Link, Node, load_graph


class NodeTitleTests(unittest.TestCase):
    def test_title_and_fallbacks(self) -> None:
        graph = load_graph(
            {
                "nodes": [
                    {"id": "a", "title": "Alpha"},
                    {"id": "b", "title": {"label": "Beta", "extra": 1}},
                    {"id": "c"},
                    {"id": 7},
                ],
                "links": [],
            }
        )
        self.assertEqual([node_title(n) for n in graph.nodes], ["Alpha", "Beta", "c", "7"])

    def test_structured_title_without_label_is_invalid_input(self) -> None:
        with self.assertRaises(InvalidInput):
            load_graph({"nodes": [{"id": "a", "title": {"text": "x"}}], "links": []})

    def test_structured_group_and_link_titles_unwrap_label(self) -> None:
        graph = load_graph(
            {
                "nodes": [{"id": "a"}, {"id": "b"}],
                "links": [{"source": "a", "target": "b", "value": 1, "title": {"label": "Gas"}}],
                "groups": [{"id": "g", "nodes": ["a"], "title": {"label": "Plant"}}],
            }
        )
        self.assertEqual(graph.groups[0].title, "Plant")
        self.assertEqual(link_type_title(graph.links[0]), "Gas")

    def test_accessor_tolerates_unvalidated_title_object(self) -> None:
        self.assertEqual(node_title(Node(id="a", title={})), "a")


class LinkAccessorTests(unittest.TestCase):
    def test_color_precedence(self) -> None:
        palette = Palette()
        explicit = Link("a", "b", 1, type="x", color="#123456", style={"color": "#abcdef"})
        styled = Link("a", "b", 1, type="x", style={"color": "#abcdef"})
        by_type = Link("a", "b", 1, type="x")
        self.assertEqual(link_color(explicit, palette), "#123456")
        self.assertEqual(link_color(styled, palette), "#abcdef")
        self.assertEqual(link_color(by_type, palette), CATEGORY20[0])

    def test_palette_is_stable_per_type_and_scoped_per_instance(self) -> None:
        first = Palette()
        self.assertEqual(first("x"), CATEGORY20[0])
        self.assertEqual(first("y"), CATEGORY20[1])
        self.assertEqual(first("x"), CATEGORY20[0])
        second = Palette()
        self.assertEqual(second("y"), CATEGORY20[0])

    def test_palette_wraps_after_twenty_types(self) -> None:
        palette = Palette()
        colors = [palette(i) for i in range(21)]
        self.assertEqual(colors[20], colors[0])
        self.assertEqual(len(set(colors[:20])), 20)

    def test_type_title(self) -> None:
        self.assertEqual(link_type_title(Link("a", "b", 1, type="t", title="Title")), "Title")
        self.assertEqual(link_type_title(Link("a", "b", 1, type="t")), "t")
        self.assertIsNone(link_type_title(Link("a", "b", 1)))

    def test_link_title_lines(self) -> None:
        self.assertEqual(link_title(Link("a", "b", 10), "A", "B"), "A → B\n10")
        self.assertEqual(
            link_title(Link("a", "b", 2.5, type="gas"), "A", "B", lambda v: f"{v:.2f} kWh"),
            "A → B\ngas\n2.50 kWh",
        )
        self.assertEqual(link_title(Link("a", "b", 1234.5), "A", "B"), "A → B\n1.23e+03")

    def test_link_value_errors(self) -> None:
        self.assertEqual(link_value(Link("a", "b", 3)), 3.0)
        for bad in (None, "10", True, float("nan"), -1, 10 ** 400):
            with self.subTest(value=bad):
                with self.assertRaises(InvalidInput):
                    link_value(Link("a", "b", bad))

    def test_style_class(self) -> None:
        self.assertEqual(element_style_class(Link("a", "b", 1, style="process")), "process")
        self.assertEqual(element_style_class(Link("a", "b", 1, style={"class": "process"})), "process")
        self.assertIsNone(element_style_class(Link("a", "b", 1, style={"color": "red"})))
        self.assertIsNone(element_style_class(Link("a", "b", 1)))
        self.assertEqual(element_style_class(Node("n", data={"style": "process"})), "process")
        self.assertIsNone(element_style_class(Node("n")))


class NodeValueTextTests(unittest.TestCase):
    class _Valued:
        value = 12.5

    def test_format_or_empty(self) -> None:
        self.assertEqual(node_value_text(self._Valued(), lambda v: f"{v:.0f}"), "12")
        self.assertEqual(node_value_text(self._Valued(), None), "")
        self.assertEqual(node_value_text(object(), lambda v: "x"), "")


if __name__ == "__main__":
    unittest.main()
