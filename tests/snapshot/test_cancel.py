# Copyright Red Hat
#
# tests/snapshot/test_cancel.py - Cancellation token tests.
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import signal
import os

from fschron import FsChronCancelledError, FsChronError
from fschron.snapshot.cancel import CancelToken, SigintCancel, check_cancel


class TestCancelToken(unittest.TestCase):
    def test_initial_state(self):
        token = CancelToken()
        self.assertFalse(token.cancelled)
        token.check()

    def test_cancel(self):
        token = CancelToken()
        token.cancel()
        self.assertTrue(token.cancelled)
        with self.assertRaises(FsChronCancelledError):
            token.check()

    def test_cancel_idempotent(self):
        token = CancelToken()
        token.cancel()
        token.cancel()
        self.assertTrue(token.cancelled)

    def test_cancelled_error_is_fschron_error(self):
        self.assertTrue(issubclass(FsChronCancelledError, FsChronError))

    def test_wait_times_out(self):
        token = CancelToken()
        self.assertFalse(token.wait(0.01))

    def test_wait_returns_when_cancelled(self):
        token = CancelToken()
        token.cancel()
        self.assertTrue(token.wait(10))

    def test_repr(self):
        self.assertEqual(repr(CancelToken()), "CancelToken(cancelled=False)")

    def test_check_cancel_none(self):
        check_cancel(None)

    def test_check_cancel_token(self):
        token = CancelToken()
        check_cancel(token)
        token.cancel()
        with self.assertRaises(FsChronCancelledError):
            check_cancel(token)


class TestSigintCancel(unittest.TestCase):
    def test_sigint_cancels_token(self):
        previous = signal.getsignal(signal.SIGINT)
        with SigintCancel(CancelToken()) as token:
            self.assertFalse(token.cancelled)
            os.kill(os.getpid(), signal.SIGINT)
            self.assertTrue(token.wait(5))
        self.assertIs(signal.getsignal(signal.SIGINT), previous)
