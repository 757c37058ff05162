from __future__ import annotations

import io
import json
import sys
import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest import mock

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from sankeysvg import cli
from sankeysvg.serializer import PREAMBLE

NS = "{http://www.w3.org/2000/svg}"

SIMPLE = {"nodes": [{"id": "a"}, {"id": "b"}], "links": [{"source": "a", "target": "b", "value": 10}]}


class CLIAcceptanceTests(unittest.TestCase):
    def run_cli(self, argv: list[str], stdin_text: str = "") -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        stdin = io.StringIO(stdin_text)
        with mock.patch("sys.stdout", stdout), mock.patch("sys.stderr", stderr), mock.patch("sys.stdin", stdin):
            code = cli.main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def render_file(self, payload, *options: str) -> tuple[int, str, str]:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "graph.json"
            src.write_text(json.dumps(payload), encoding="utf-8")
            return self.run_cli([*options, str(src)])

    @staticmethod
    def parse_svg(out: str) -> ET.Element:
        assert out.startswith(PREAMBLE), out[:120]
        return ET.fromstring(out[len(PREAMBLE):])

    @staticmethod
    def with_class(root: ET.Element, name: str) -> list[ET.Element]:
        return [el for el in root.iter() if name in (el.get("class") or "").split()]

    def test_default_render(self) -> None:
        code, out, err = self.render_file(SIMPLE)
        self.assertEqual(code, 0, err)
        self.assertTrue(out.startswith(
            '<?xml version="1.0" standalone="no"?>'
            '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" '
            '"http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd"><svg'
        ))
        root = self.parse_svg(out)
        self.assertEqual(root.tag, f"{NS}svg")
        self.assertEqual(root.get("viewBox"), "0 0 800 600")
        self.assertEqual((root.get("width"), root.get("height")), ("800", "600"))
        self.assertEqual(len(self.with_class(root, "link")), 1)
        self.assertEqual(len(root.findall(f".//{NS}path")), 1)
        self.assertEqual(len(self.with_class(root, "node")), 2)

    def test_background_precedes_everything(self) -> None:
        payload = dict(SIMPLE, groups=[{"id": "g", "nodes": ["a"]}])
        code, out, err = self.render_file(payload)
        self.assertEqual(code, 0, err)
        root = self.parse_svg(out)
        elements = list(root.iter())
        background = root[0]
        self.assertEqual(background.tag, f"{NS}rect")
        self.assertIn("fill: white", background.get("style"))
        for name in ("group", "link", "node"):
            first = self.with_class(root, name)[0]
            self.assertLess(elements.index(background), elements.index(first), name)

    def test_output_is_deterministic(self) -> None:
        payload = {
            "nodes": [{"id": n} for n in "abcd"],
            "links": [
                {"source": "a", "target": "b", "value": 3, "type": "x"},
                {"source": "a", "target": "c", "value": 2, "type": "y"},
                {"source": "c", "target": "d", "value": 2, "type": "x"},
                {"source": "d", "target": "a", "value": 1, "type": "z"},
            ],
        }
        first = self.render_file(payload, "--node-values", ".0f")
        second = self.render_file(payload, "--node-values", ".0f")
        self.assertEqual(first[0], 0, first[2])
        self.assertEqual(first[1], second[1])

    def test_missing_value_fails_without_output(self) -> None:
        payload = {"nodes": [{"id": "a"}, {"id": "b"}], "links": [{"source": "a", "target": "b"}]}
        code, out, err = self.render_file(payload)
        self.assertEqual(code, 3)
        self.assertEqual(out, "")
        self.assertIn("E_INPUT", err)
        self.assertIn("value", err)

    def test_control_characters_still_parse_as_xml(self) -> None:
        payload = {
            "nodes": [{"id": "a", "title": "x\u0001y"}, {"id": "b\u0008"}],
            "links": [{"source": "a", "target": "b\u0008", "value": 3, "type": "t\u001f"}],
            "groups": [{"id": "g", "nodes": ["a"], "title": {"label": "Plant\u000b"}}],
        }
        code, out, err = self.render_file(payload)
        self.assertEqual(code, 0, err)
        root = self.parse_svg(out)
        labels = [el.text for el in self.with_class(root, "node-title")]
        self.assertEqual(labels, ["xy", "b"])
        self.assertIsNotNone(root.find(f".//{NS}g[@id='node-b']"))
        group = self.with_class(root, "group")[0]
        self.assertEqual(group.find(f"{NS}text").text, "Plant")

    def test_size_margins_and_title(self) -> None:
        payload = dict(SIMPLE, metadata={"title": "Flows"})
        code, out, err = self.render_file(payload, "-s", "400,300", "-m", "10,20", "--font-size", "10")
        self.assertEqual(code, 0, err)
        root = self.parse_svg(out)
        self.assertEqual(root.get("viewBox"), "0 0 400 300")
        self.assertIn("font-size: 10px", root.get("style"))
        container = self.with_class(root, "sankey")[0]
        self.assertEqual(container.get("transform"), "translate(20, 10)")
        title = self.with_class(root, "title")[0]
        self.assertEqual(title.text, "Flows")
        self.assertEqual(title.get("x"), "390")

    def test_square_size(self) -> None:
        code, out, err = self.render_file(SIMPLE, "--size", "500")
        self.assertEqual(code, 0, err)
        self.assertEqual(self.parse_svg(out).get("viewBox"), "0 0 500 500")

    def test_manual_positions(self) -> None:
        payload = {
            "nodes": [{"id": "a", "px": 1, "py": 2}, {"id": "b", "px": 30, "py": 4}],
            "links": [{"source": "a", "target": "b", "value": 5}],
        }
        code, out, err = self.render_file(payload, "-p", "px,py", "-k", "10")
        self.assertEqual(code, 0, err)
        root = self.parse_svg(out)
        node = root.find(f".//{NS}g[@id='node-a']")
        self.assertIsNotNone(node)
        self.assertEqual(node.get("transform"), "translate(10, 20)")

    def test_node_values_and_link_tooltips(self) -> None:
        payload = {
            "nodes": [{"id": "a", "title": "Source"}, {"id": "b"}],
            "links": [{"source": "a", "target": "b", "value": 10, "type": "gas"}],
        }
        code, out, err = self.render_file(payload, "--node-values", ".1f")
        self.assertEqual(code, 0, err)
        root = self.parse_svg(out)
        values = [el.text for el in self.with_class(root, "node-value")]
        self.assertEqual(values, ["10.0", "10.0"])
        link = self.with_class(root, "link")[0]
        self.assertEqual(link.find(f"{NS}title").text, "Source → b\ngas\n10.0")

    def test_stdin_input(self) -> None:
        code, out, err = self.run_cli([], stdin_text=json.dumps(SIMPLE))
        self.assertEqual(code, 0, err)
        self.assertEqual(self.parse_svg(out).get("viewBox"), "0 0 800 600")

    def test_empty_stdin_errors(self) -> None:
        code, out, err = self.run_cli([], stdin_text="   ")
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)

    def test_invalid_margins(self) -> None:
        code, out, err = self.render_file(SIMPLE, "-m", "1,2,3")
        self.assertEqual(code, 2)
        self.assertEqual(out, "")
        self.assertIn("error[E_ARGS]", err)
        self.assertIn("1, 2 or 4", err)

    def test_invalid_size_and_position(self) -> None:
        for options in (["-s", "1,2,3"], ["-s", "big"], ["-p", "x"], ["-k", "zero"]):
            with self.subTest(options=options):
                code, out, err = self.render_file(SIMPLE, *options)
                self.assertEqual(code, 2)
                self.assertIn("E_ARGS", err)

    def test_dangling_reference_is_layout_error(self) -> None:
        payload = {"nodes": [{"id": "a"}], "links": [{"source": "a", "target": "ghost", "value": 1}]}
        code, out, err = self.render_file(payload)
        self.assertEqual(code, 4)
        self.assertEqual(out, "")
        self.assertIn("E_LAYOUT", err)
        self.assertIn("ghost", err)

    def test_missing_file(self) -> None:
        code, out, err = self.run_cli(["definitely_missing_graph.json"])
        self.assertEqual(code, 5)
        self.assertIn("E_IO_READ", err)

    def test_malformed_json_reports_position(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "broken.json"
            src.write_text('{"nodes": [\n  {"id": "a"},,\n]}', encoding="utf-8")
            code, out, err = self.run_cli(["--error-format", "json", str(src)])
        self.assertEqual(code, 3)
        payload = json.loads(err.strip())
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["code"], "E_PARSE_JSON")
        self.assertEqual(payload["line"], 2)

    def test_structural_errors_are_invalid_input(self) -> None:
        for payload in ([], {"nodes": []}, {"nodes": [{"id": "a"}, {"id": "a"}], "links": []}):
            with self.subTest(payload=payload):
                code, out, err = self.render_file(payload)
                self.assertEqual(code, 3)
                self.assertIn("E_INPUT", err)

    def test_unknown_option_is_usage_error(self) -> None:
        code, out, err = self.run_cli(["--bogus"])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)


if __name__ == "__main__":
    unittest.main()
