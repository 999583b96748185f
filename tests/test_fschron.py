# Copyright Red Hat
#
# tests/test_fschron.py - fschron package unit tests
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from io import StringIO
from unittest.mock import MagicMock, patch
import logging

import fschron

log = logging.getLogger()


class FsChronTestsSimple(unittest.TestCase):
    """Test fschron module"""

    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)

    def tearDown(self):
        log.debug("Tearing down (%s)", self._testMethodName)
        fschron.set_debug_mask(0)

    def test_set_debug_mask(self):
        fschron.set_debug_mask(fschron.FSCHRON_DEBUG_ALL)
        self.assertEqual(fschron.get_debug_mask(), fschron.FSCHRON_DEBUG_ALL)

    def test_set_debug_mask_bad_mask(self):
        with self.assertRaises(ValueError):
            fschron.set_debug_mask(fschron.FSCHRON_DEBUG_ALL + 1)
        with self.assertRaises(ValueError):
            fschron.set_debug_mask(-1)

    def test_SubsystemFilter(self):
        # Start with no subsystems enabled
        fschron.set_debug_mask(0)
        sf = fschron.SubsystemFilter("fschron")
        self.assertEqual(sf.enabled_subsystems, set())
        # Enable a couple and ensure new filters initialise from cache
        fschron.set_debug_mask(
            fschron.FSCHRON_DEBUG_SNAPSHOT | fschron.FSCHRON_DEBUG_WATCH
        )
        sf2 = fschron.SubsystemFilter("fschron")
        self.assertIn(fschron.FSCHRON_SUBSYSTEM_SNAPSHOT, sf2.enabled_subsystems)
        self.assertIn(fschron.FSCHRON_SUBSYSTEM_WATCH, sf2.enabled_subsystems)
        self.assertNotIn(fschron.FSCHRON_SUBSYSTEM_CONFIG, sf2.enabled_subsystems)

    def test_SubsystemFilter_filter(self):
        sf = fschron.SubsystemFilter("fschron")
        sf.set_debug_subsystems([fschron.FSCHRON_SUBSYSTEM_WATCH])

        def _record(level, subsystem=None):
            record = logging.LogRecord("fschron", level, __file__, 1, "msg", (), None)
            if subsystem:
                record.subsystem = subsystem
            return record

        self.assertTrue(sf.filter(_record(logging.INFO, "fschron.snapshot")))
        self.assertTrue(sf.filter(_record(logging.DEBUG)))
        self.assertTrue(sf.filter(_record(logging.DEBUG, "fschron.watch")))
        self.assertFalse(sf.filter(_record(logging.DEBUG, "fschron.snapshot")))

    def test_ProgressAwareHandler_notifies_progress(self):
        progress = MagicMock()
        fschron.register_progress(progress)
        try:
            with patch("fschron._fschron.sys.stderr", new=StringIO()) as stream:
                handler = fschron.ProgressAwareHandler()
                handler.setFormatter(logging.Formatter("%(message)s"))
                handler.emit(
                    logging.LogRecord("x", logging.INFO, __file__, 1, "hi", (), None)
                )
                self.assertEqual(stream.getvalue(), "hi\n")
            progress.reset_position.assert_called_once()
        finally:
            fschron.unregister_progress(progress)

    def test_exception_hierarchy(self):
        for exc in (
            fschron.FsChronCancelledError,
            fschron.FsChronPathError,
            fschron.FsChronNotFoundError,
            fschron.FsChronSnapshotError,
            fschron.FsChronArgumentError,
            fschron.FsChronStateError,
            fschron.FsChronConfigError,
        ):
            with self.subTest(exc=exc.__name__):
                self.assertTrue(issubclass(exc, fschron.FsChronError))


class FormatTests(unittest.TestCase):
    def test_format_bytes(self):
        cases = [
            (0, "0 B"),
            (10, "10 B"),
            (1023, "1023 B"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (1024 * 1024, "1 MB"),
            (int(2.25 * 2**30), "2.25 GB"),
            (3 * 2**40, "3 TB"),
            (2048 * 2**40, "2048 TB"),
        ]
        for value, expected in cases:
            with self.subTest(value=value):
                self.assertEqual(fschron.format_bytes(value), expected)

    def test_format_bytes_rounds_two_places(self):
        self.assertEqual(fschron.format_bytes(1234), "1.21 KB")

    def test_format_signed_bytes(self):
        self.assertEqual(fschron.format_signed_bytes(7), "+7 B")
        self.assertEqual(fschron.format_signed_bytes(0), "+0 B")
        self.assertEqual(fschron.format_signed_bytes(-1536), "-1.5 KB")

    def test_format_size_diff(self):
        self.assertEqual(fschron.format_size_diff(10, 12), "+2 B (+20%)")
        self.assertEqual(fschron.format_size_diff(12, 10), "-2 B (-16.67%)")
        self.assertEqual(fschron.format_size_diff(0, 5), "+5 B (+0%)")
        self.assertEqual(fschron.format_size_diff(100, 100), "+0 B (+0%)")
