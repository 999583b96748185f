# Copyright Red Hat
#
# tests/test_command.py - CLI layer tests
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import patch
from contextlib import redirect_stdout
from datetime import datetime
from io import StringIO
import tempfile
import logging
import json
import lzma
import os

log = logging.getLogger()

import fschron.command as command
from fschron import (
    FSCHRON_DEBUG_ALL,
    FSCHRON_DEBUG_COMMAND,
    FsChronNotFoundError,
    get_debug_mask,
    set_debug_mask,
)
from fschron.snapshot import ChangeNotification, load_snapshot

from tests import MockArgs
from tests.snapshot._util import write_tree


class CommandTestsBase(unittest.TestCase):
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)
        self.tmpdir = tempfile.TemporaryDirectory()
        self.base = self.tmpdir.name
        # A config path that does not exist yields the built-in defaults.
        self.config_file = os.path.join(self.base, "fschron.conf")

    def tearDown(self):
        set_debug_mask(0)
        self.tmpdir.cleanup()

    def path(self, *parts):
        return os.path.join(self.base, *parts)

    def get_main_args(self):
        """
        Return an argument array (in the form of sys.argv) reflecting the
        ``fschron`` command using the test configuration file.

        :returns: A list of command arguments.
        """
        return ["fschron", "-c", self.config_file]

    def get_debug_main_args(self):
        return self.get_main_args() + ["-vv", "--debug=all"]

    def run_main(self, args):
        out = StringIO()
        with redirect_stdout(out):
            status = command.main(args)
        return status, out.getvalue()


class CommandTestsSetDebug(CommandTestsBase):
    def test_set_debug_none(self):
        args = MockArgs()
        command.set_debug(args.debug)
        self.assertEqual(get_debug_mask(), 0)

    def test_set_debug_single(self):
        args = MockArgs()
        args.debug = "command"
        command.set_debug(args.debug)
        self.assertEqual(get_debug_mask(), FSCHRON_DEBUG_COMMAND)

    def test_set_debug_list(self):
        args = MockArgs()
        args.debug = "snapshot,watch,command,config"
        command.set_debug(args.debug)
        self.assertEqual(get_debug_mask(), FSCHRON_DEBUG_ALL)

    def test_set_debug_all(self):
        args = MockArgs()
        args.debug = "all"
        command.set_debug(args.debug)
        self.assertEqual(get_debug_mask(), FSCHRON_DEBUG_ALL)

    def test_set_debug_single_bad(self):
        args = MockArgs()
        args.debug = "nosuch"
        with self.assertRaises(ValueError):
            command.set_debug(args.debug)


class CommandTestsMain(CommandTestsBase):
    def test_main_version(self):
        args = self.get_main_args() + ["--version"]
        with self.assertRaises(SystemExit):
            self.run_main(args)

    def test_main_too_few_args(self):
        status, _ = self.run_main(self.get_debug_main_args())
        self.assertEqual(status, 1)

    def test_main_bad_command(self):
        args = self.get_main_args() + ["nosuch", "command"]
        with self.assertRaises(SystemExit):
            self.run_main(args)

    def test_main_bad_debug_option(self):
        args = self.get_main_args() + ["--debug=nosuch", "watch", self.base]
        status, out = self.run_main(args)
        self.assertEqual(status, 1)
        self.assertIn("Unknown debug option: nosuch", out)

    def test_main_bad_format(self):
        args = self.get_main_args() + ["snapshot", "-f", "html", self.base, "out"]
        with self.assertRaises(SystemExit):
            self.run_main(args)

    def test_main_bad_config(self):
        with open(self.config_file, "w", encoding="utf8") as fp:
            fp.write("[global]\nwatch_interval = never\n")
        write_tree(self.path("tree"), {"a.txt": "a"})
        args = self.get_main_args() + [
            "snapshot",
            self.path("tree"),
            self.path("out.json"),
        ]
        status, _ = self.run_main(args)
        self.assertEqual(status, 1)
        self.assertFalse(os.path.exists(self.path("out.json")))


class CommandTestsSnapshot(CommandTestsBase):
    def setUp(self):
        super().setUp()
        self.tree = self.path("tree")
        write_tree(
            self.tree,
            {
                "a.txt": "alpha",
                "b.txt": "bravo!",
                "sub/c.txt": "charlie",
                "debug.log": "excluded by default",
            },
        )

    def test_snapshot_json(self):
        output = self.path("snaps", "one.json")
        status, out = self.run_main(
            self.get_main_args() + ["snapshot", self.tree, output]
        )
        self.assertEqual(status, 0)
        self.assertIn(f"Snapshot saved: {output}", out)
        self.assertIn("  Files tracked: 3", out)
        self.assertIn("  Files skipped: 1", out)
        self.assertIn("  Files failed:  0", out)
        self.assertIn("  Total size:    18 B", out)

        snapshot = load_snapshot(output)
        self.assertEqual(
            [entry.relative_path for entry in snapshot],
            ["a.txt", "b.txt", "sub/c.txt"],
        )
        self.assertEqual(snapshot.root_directory, self.tree)
        self.assertEqual(len(snapshot.files[0].content_hash), 64)

    def test_snapshot_debug(self):
        output = self.path("one.json")
        status, _ = self.run_main(
            self.get_debug_main_args() + ["snapshot", self.tree, output]
        )
        self.assertEqual(status, 0)
        self.assertTrue(os.path.exists(output))

    def test_snapshot_include_no_hash(self):
        output = self.path("one.json")
        args = self.get_main_args() + [
            "snapshot",
            "-i",
            "sub/**",
            "--no-hash",
            self.tree,
            output,
        ]
        status, _ = self.run_main(args)
        self.assertEqual(status, 0)

        snapshot = load_snapshot(output)
        self.assertEqual([entry.relative_path for entry in snapshot], ["sub/c.txt"])
        self.assertEqual(snapshot.files[0].content_hash, "")
        self.assertTrue(snapshot.options.no_hash)

    def test_snapshot_exclude_overrides_config_default(self):
        output = self.path("one.json")
        args = self.get_main_args() + ["snapshot", "-x", "*.txt", self.tree, output]
        status, _ = self.run_main(args)
        self.assertEqual(status, 0)
        snapshot = load_snapshot(output)
        self.assertEqual([entry.relative_path for entry in snapshot], ["debug.log"])

    def test_snapshot_csv(self):
        output = self.path("one.csv")
        args = self.get_main_args() + ["snapshot", "-f", "csv", self.tree, output]
        status, _ = self.run_main(args)
        self.assertEqual(status, 0)
        with open(output, encoding="utf8") as fp:
            lines = fp.read().splitlines()
        self.assertEqual(lines[0], "RelativePath,Length,LastWriteUtc,Sha256")
        self.assertEqual(len(lines), 4)
        self.assertTrue(lines[1].startswith("a.txt,5,"))

    def test_snapshot_reports_skipped_files(self):
        tree = self.path("mixed")
        write_tree(tree, {"a.txt": "a", "b.bin": "bb", "c.bin": "cc"})
        output = self.path("mixed.json")
        args = self.get_main_args() + ["snapshot", "-i", "*.txt", tree, output]
        status, out = self.run_main(args)
        self.assertEqual(status, 0)
        self.assertIn("  Files tracked: 1", out)
        self.assertIn("  Files skipped: 2", out)
        self.assertIn("  Files failed:  0", out)
        self.assertIn("  Total size:    1 B", out)

    def test_snapshot_csv_compressed(self):
        output = self.path("one.csv.xz")
        args = self.get_main_args() + ["snapshot", "-f", "csv", self.tree, output]
        status, _ = self.run_main(args)
        self.assertEqual(status, 0)
        with lzma.open(output, "rt", encoding="utf8") as fp:
            lines = fp.read().splitlines()
        self.assertEqual(lines[0], "RelativePath,Length,LastWriteUtc,Sha256")
        self.assertEqual(len(lines), 4)

    def test_snapshot_html_default_format_falls_back_to_json(self):
        with open(self.config_file, "w", encoding="utf8") as fp:
            fp.write("[global]\ndefault_format = html\n")
        output = self.path("one.snap")
        status, _ = self.run_main(
            self.get_main_args() + ["snapshot", self.tree, output]
        )
        self.assertEqual(status, 0)
        with open(output, encoding="utf8") as fp:
            self.assertEqual(len(json.load(fp)["files"]), 3)

    def test_snapshot_missing_directory(self):
        args = self.get_main_args() + [
            "snapshot",
            self.path("nosuch"),
            self.path("one.json"),
        ]
        status, _ = self.run_main(args)
        self.assertEqual(status, 1)


class CommandTestsDiff(CommandTestsBase):
    def setUp(self):
        super().setUp()
        self.tree = self.path("tree")
        write_tree(self.tree, {"keep.txt": "same", "edit.txt": "v1", "gone.txt": "x"})
        self.old = self.path("old.json")
        self.new = self.path("new.json")
        self.assertEqual(
            self.run_main(self.get_main_args() + ["snapshot", self.tree, self.old])[0],
            0,
        )
        os.unlink(os.path.join(self.tree, "gone.txt"))
        write_tree(self.tree, {"edit.txt": "version 2", "added.txt": "new"})
        self.assertEqual(
            self.run_main(self.get_main_args() + ["snapshot", self.tree, self.new])[0],
            0,
        )

    def test_diff_report(self):
        status, out = self.run_main(
            self.get_main_args() + ["diff", self.old, self.new]
        )
        self.assertEqual(status, 0)
        self.assertIn("Added files (1):", out)
        self.assertIn("  + added.txt", out)
        self.assertIn("  - gone.txt", out)
        self.assertIn("  * edit.txt", out)
        self.assertIn("Total changes: 3", out)
        self.assertNotIn("Unchanged files", out)

    def test_diff_detailed_show_unchanged(self):
        args = self.get_main_args() + ["diff", "-D", "-u", self.old, self.new]
        status, out = self.run_main(args)
        self.assertEqual(status, 0)
        self.assertIn("Size: 2 B -> 9 B", out)
        self.assertIn("Unchanged files (1):", out)
        self.assertIn("  = keep.txt", out)

    def test_diff_export_json(self):
        output = self.path("reports", "diff.json")
        args = self.get_main_args() + ["diff", "-o", output, self.old, self.new]
        status, out = self.run_main(args)
        self.assertEqual(status, 0)
        self.assertIn(f"Diff exported to: {output}", out)
        with open(output, encoding="utf8") as fp:
            data = json.load(fp)
        self.assertEqual(data["summary"]["totalChanges"], 3)
        self.assertEqual(data["summary"]["sizeDelta"], 9 - 2 + 3 - 1)

    def test_diff_export_html(self):
        output = self.path("diff.html")
        args = self.get_main_args() + [
            "diff",
            "-f",
            "html",
            "-o",
            output,
            self.old,
            self.new,
        ]
        status, _ = self.run_main(args)
        self.assertEqual(status, 0)
        with open(output, encoding="utf8") as fp:
            text = fp.read()
        self.assertTrue(text.startswith("<!DOCTYPE html>"))
        self.assertIn("added.txt", text)

    def test_diff_export_csv(self):
        output = self.path("diff.csv")
        args = self.get_main_args() + [
            "diff",
            "--format",
            "csv",
            "--output",
            output,
            self.old,
            self.new,
        ]
        status, _ = self.run_main(args)
        self.assertEqual(status, 0)
        with open(output, encoding="utf8") as fp:
            lines = fp.read().splitlines()
        self.assertEqual(lines[0], "Status,FilePath,OldSize,NewSize,LastModified")
        self.assertEqual([line.split(",")[0] for line in lines[1:]],
                         ["Added", "Removed", "Changed"])

    def test_diff_missing_snapshot(self):
        args = self.get_main_args() + ["diff", self.path("nosuch.json"), self.new]
        status, _ = self.run_main(args)
        self.assertEqual(status, 1)

    def test_diff_missing_snapshot_debug_raises(self):
        args = self.get_debug_main_args() + [
            "diff",
            self.path("nosuch.json"),
            self.new,
        ]
        with self.assertRaises(FsChronNotFoundError):
            self.run_main(args)


class CommandTestsCompare(CommandTestsBase):
    def test_compare(self):
        write_tree(self.path("one"), {"a.txt": "one", "b.txt": "two"})
        write_tree(self.path("two"), {"a.txt": "one", "b.txt": "TWO!", "c.txt": "new"})
        args = self.get_main_args() + ["compare", self.path("one"), self.path("two")]
        status, out = self.run_main(args)
        self.assertEqual(status, 0)
        self.assertIn("  + c.txt", out)
        self.assertIn("  * b.txt", out)
        self.assertIn("Total changes: 2", out)
        self.assertIn(
            f"Scanned {self.path('one')}: tracked=2 skipped=0 failed=0", out
        )
        self.assertIn(
            f"Scanned {self.path('two')}: tracked=3 skipped=0 failed=0", out
        )

    def test_compare_identical(self):
        write_tree(self.path("one"), {"a.txt": "same"})
        write_tree(self.path("two"), {"a.txt": "same"})
        args = self.get_main_args() + [
            "compare",
            "--no-hash",
            self.path("one"),
            self.path("two"),
        ]
        status, out = self.run_main(args)
        self.assertEqual(status, 0)
        self.assertIn("Total changes: 0", out)


class CommandTestsWatch(CommandTestsBase):
    def test_watch_bad_interval(self):
        args = self.get_main_args() + ["watch", "-I", "0", self.base]
        status, _ = self.run_main(args)
        self.assertEqual(status, 1)

    def test_watch_prints_notifications(self):
        notification = ChangeNotification(
            timestamp=datetime(2024, 1, 1, 12, 30, 5),
            added=("new.txt",),
            changed=("edit.txt",),
        )
        with patch("fschron.command.watch") as mock_watch:
            mock_watch.return_value = iter([notification])
            args = self.get_main_args() + ["watch", "-I", "2", self.base]
            status, out = self.run_main(args)

        self.assertEqual(status, 0)
        self.assertIn(f"Watching {self.base} every 2s (Ctrl+C to stop)", out)
        self.assertIn("[12:30:05] Changes detected:", out)
        self.assertIn("  + new.txt", out)
        self.assertIn("  * edit.txt", out)
        self.assertIn("Stopped watching.", out)

        (root, options, interval, _cancel) = mock_watch.call_args[0]
        self.assertEqual(root, self.base)
        self.assertEqual(interval, 2)
        self.assertIn("*.log", options.exclude_patterns)

    def test_watch_default_interval_from_config(self):
        with open(self.config_file, "w", encoding="utf8") as fp:
            fp.write("[global]\nwatch_interval = 7\n")
        with patch("fschron.command.watch") as mock_watch:
            mock_watch.return_value = iter([])
            status, out = self.run_main(self.get_main_args() + ["watch", self.base])
        self.assertEqual(status, 0)
        self.assertIn("every 7s", out)
        self.assertEqual(mock_watch.call_args[0][2], 7)

    def test_watch_no_hash_and_progress(self):
        with patch("fschron.command.watch") as mock_watch:
            mock_watch.return_value = iter([])
            args = self.get_main_args() + ["watch", "--no-hash", "-P", self.base]
            status, _ = self.run_main(args)
        self.assertEqual(status, 0)
        options = mock_watch.call_args[0][1]
        self.assertTrue(options.no_hash)
        self.assertTrue(options.show_progress)
