# Copyright Red Hat
#
# tests/snapshot/test_render.py - Snapshot and diff renderer tests.
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import json
import csv
import io

from fschron import FsChronArgumentError
from fschron.snapshot.engine import compute_diff
from fschron.snapshot.render import (
    CsvRenderer,
    HtmlRenderer,
    JsonRenderer,
    Renderer,
    get_renderer,
)

from ._util import make_entry, make_snapshot


def _diff(show_unchanged=False):
    old = make_snapshot(
        [
            make_entry("keep.txt", length=1, content_hash="a" * 64),
            make_entry("foo.txt", length=10, content_hash="1" * 64),
            make_entry("gone.txt", length=4),
        ]
    )
    new = make_snapshot(
        [
            make_entry("keep.txt", length=1, content_hash="a" * 64),
            make_entry("foo.txt", length=12, content_hash="2" * 64),
            make_entry("<bar>&.txt", length=5),
        ]
    )
    return compute_diff(old, new, show_unchanged=show_unchanged)


def _csv_rows(data):
    return list(csv.reader(io.StringIO(data.decode("utf8"))))


class TestGetRenderer(unittest.TestCase):
    def test_known_formats(self):
        self.assertIsInstance(get_renderer("json"), JsonRenderer)
        self.assertIsInstance(get_renderer("csv"), CsvRenderer)
        self.assertIsInstance(get_renderer("HTML"), HtmlRenderer)

    def test_unknown_format(self):
        with self.assertRaises(FsChronArgumentError):
            get_renderer("xml")

    def test_render_unsupported_type(self):
        with self.assertRaises(FsChronArgumentError):
            get_renderer("json").render({"not": "a snapshot"})

    def test_renderer_is_abstract(self):
        with self.assertRaises(TypeError):
            Renderer()  # pylint: disable=abstract-class-instantiated


class TestJsonRenderer(unittest.TestCase):
    def test_snapshot(self):
        snap = make_snapshot([make_entry("a.txt", content="x")])
        data = json.loads(JsonRenderer().render(snap))
        self.assertEqual(data, snap.to_dict())

    def test_diff(self):
        data = json.loads(JsonRenderer().render(_diff()))
        self.assertEqual(data["summary"]["sizeDelta"], 5 - 4 + 2)
        self.assertEqual(data["removed"][0]["relativePath"], "gone.txt")


class TestCsvRenderer(unittest.TestCase):
    def test_snapshot(self):
        snap = make_snapshot(
            [make_entry("a, b.txt", length=3, mtime=0, content_hash="f" * 64)]
        )
        rows = _csv_rows(CsvRenderer().render(snap))
        self.assertEqual(rows[0], ["RelativePath", "Length", "LastWriteUtc", "Sha256"])
        self.assertEqual(rows[1], ["a, b.txt", "3", "1970-01-01 00:00:00", "f" * 64])

    def test_diff(self):
        rows = _csv_rows(CsvRenderer().render(_diff()))
        self.assertEqual(
            rows[0], ["Status", "FilePath", "OldSize", "NewSize", "LastModified"]
        )
        statuses = [(row[0], row[1], row[2], row[3]) for row in rows[1:]]
        self.assertEqual(
            statuses,
            [
                ("Added", "<bar>&.txt", "", "5"),
                ("Removed", "gone.txt", "4", ""),
                ("Changed", "foo.txt", "10", "12"),
            ],
        )

    def test_diff_unchanged(self):
        rows = _csv_rows(CsvRenderer().render(_diff(show_unchanged=True)))
        self.assertEqual(rows[-1][:4], ["Unchanged", "keep.txt", "1", "1"])


class TestHtmlRenderer(unittest.TestCase):
    def test_snapshot_not_supported(self):
        snap = make_snapshot([make_entry("a.txt")])
        with self.assertRaises(FsChronArgumentError):
            HtmlRenderer().render(snap)

    def test_diff(self):
        html = HtmlRenderer().render(_diff()).decode("utf8")
        self.assertTrue(html.startswith("<!DOCTYPE html>"))
        self.assertIn("<span class='added'>Added:</span> 1 files", html)
        self.assertIn("<span class='removed'>Removed:</span> 1 files", html)
        self.assertIn("<span class='changed'>Changed:</span> 1 files", html)
        self.assertIn("<strong>Total size change:</strong> +3 B", html)
        self.assertIn("<td>foo.txt</td><td>10 B</td><td>12 B</td>", html)
        self.assertIn("+2 B (+20%)", html)

    def test_diff_escapes_paths(self):
        html = HtmlRenderer().render(_diff()).decode("utf8")
        self.assertIn("&lt;bar&gt;&amp;.txt", html)
        self.assertNotIn("<bar>", html)

    def test_diff_without_changes_has_no_tables(self):
        snap = make_snapshot([make_entry("a.txt")])
        html = HtmlRenderer().render(compute_diff(snap, snap)).decode("utf8")
        self.assertNotIn("<table>", html)
        self.assertTrue(html.rstrip().endswith("</body></html>"))
