"""
Tests for embedded version headers.

Headers are read and written on real files under a temporary directory.
"""

import json
import tempfile
import shutil
import unittest
from pathlib import Path

from compver.headers import HeaderManager, HeaderMetadata


class TestHeaderManager(unittest.TestCase):
    """Read/write behaviour across comment styles."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir)
        self.headers = HeaderManager(self.temp_dir)
        self.meta = HeaderMetadata(version="1.2.0", component="greeting-prompt",
                                   component_id="k3x9a2")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, rel, content):
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    def test_markdown_header_inserted_at_top(self):
        # Given: a prompt without a header
        path = self._write("prompts/greeting.md", "Hello there.\n")

        # When: the header is written
        self.assertTrue(self.headers.write_metadata("prompts/greeting.md", self.meta))

        # Then: it is the first line, as an HTML comment, and reads back
        lines = path.read_text().splitlines()
        self.assertEqual(
            lines[0],
            "<!-- compver: id=k3x9a2 version=1.2.0 component=greeting-prompt -->",
        )
        self.assertEqual(lines[1], "Hello there.")
        self.assertEqual(self.headers.read_metadata("prompts/greeting.md"), self.meta)

    def test_existing_header_updated_in_place(self):
        path = self._write("queries/orders.sql",
                           "-- Orders report\n-- compver: version=1.0.0 component=orders-query\nSELECT 1;\n")

        self.headers.write_metadata("queries/orders.sql", HeaderMetadata("1.0.1", "orders-query"))

        self.assertEqual(path.read_text(),
                         "-- Orders report\n-- compver: version=1.0.1 component=orders-query\nSELECT 1;\n")

    def test_replace_moves_header_to_top(self):
        path = self._write("queries/orders.sql",
                           "-- Orders report\n-- compver: version=1.0.0 component=orders-query\nSELECT 1;\n")

        self.headers.write_metadata("queries/orders.sql", HeaderMetadata("1.0.1", "orders-query"),
                                    replace=True)

        self.assertEqual(path.read_text(),
                         "-- compver: version=1.0.1 component=orders-query\n-- Orders report\nSELECT 1;\n")

    def test_shebang_stays_first(self):
        path = self._write("scripts/run.sh", "#!/bin/sh\necho hi\n")

        self.headers.write_metadata("scripts/run.sh", self.meta)

        lines = path.read_text().splitlines()
        self.assertEqual(lines[0], "#!/bin/sh")
        self.assertTrue(lines[1].startswith("# compver: "))

    def test_resolved_token_round_trips(self):
        self._write("prompts/a.md", "x\n")
        meta = HeaderMetadata("1.2.1", "a-prompt", "abc123", resolved="1.2.0+1.1.0")
        self.headers.write_metadata("prompts/a.md", meta)
        self.assertEqual(self.headers.read_metadata("prompts/a.md").resolved, "1.2.0+1.1.0")

    def test_header_below_scan_window_is_ignored(self):
        body = "".join(f"line {i}\n" for i in range(12))
        self._write("prompts/late.md", body + "<!-- compver: version=1.0.0 component=late-prompt -->\n")
        self.assertIsNone(self.headers.read_metadata("prompts/late.md"))

    def test_json_object_gets_key(self):
        path = self._write("schemas/order.json", json.dumps({"type": "object"}))

        self.assertTrue(self.headers.supports_headers("schemas/order.json"))
        self.headers.write_metadata("schemas/order.json", self.meta)

        data = json.loads(path.read_text())
        self.assertEqual(data["_compver"], {"version": "1.2.0", "component": "greeting-prompt",
                                            "id": "k3x9a2"})
        self.assertEqual(data["type"], "object")
        self.assertEqual(self.headers.read_metadata("schemas/order.json"), self.meta)

    def test_json_array_has_no_header(self):
        self._write("schemas/list.json", "[1, 2]")
        self.assertFalse(self.headers.supports_headers("schemas/list.json"))
        self.assertFalse(self.headers.write_metadata("schemas/list.json", self.meta))

    def test_unknown_extension_uses_type_hint(self):
        self._write("prompts/system", "Be brief.\n")
        self.assertFalse(self.headers.supports_headers("prompts/system"))
        self.assertTrue(self.headers.supports_headers("prompts/system", "prompt"))
        self.headers.write_metadata("prompts/system", self.meta, type_hint="prompt")
        self.assertEqual(self.headers.read_metadata("prompts/system"), self.meta)

    def test_missing_file_reads_as_none(self):
        self.assertIsNone(self.headers.read_metadata("nope.md"))

    def test_incomplete_header_is_not_a_header(self):
        self._write("prompts/a.md", "<!-- compver: version=1.0.0 -->\n")
        self.assertIsNone(self.headers.read_metadata("prompts/a.md"))


if __name__ == '__main__':
    unittest.main()
