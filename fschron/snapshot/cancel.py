# Copyright Red Hat
#
# fschron/snapshot/cancel.py - File Chronicle cooperative cancellation
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Cooperative cancellation for long running snapshot operations.
"""
from typing import Optional
import threading
import logging
import signal

from fschron import FsChronCancelledError

_log = logging.getLogger(__name__)

_log_debug = _log.debug


class CancelToken:
    """
    A cancellation flag shared between the party requesting cancellation
    (for example a SIGINT handler) and the operation being cancelled.

    Operations call ``check()`` at their suspension points and
    ``wait()`` instead of sleeping.
    """

    def __init__(self):
        self._event = threading.Event()

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled})"

    def cancel(self):
        """
        Request cancellation. Idempotent.
        """
        if not self._event.is_set():
            _log_debug("Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """
        ``True`` if cancellation has been requested.
        """
        return self._event.is_set()

    def check(self):
        """
        Raise ``FsChronCancelledError`` if cancellation has been requested.

        :raises FsChronCancelledError: If the token is cancelled.
        """
        if self._event.is_set():
            raise FsChronCancelledError("Operation cancelled")

    def wait(self, timeout: Optional[float]) -> bool:
        """
        Sleep for up to ``timeout`` seconds, returning early if cancellation
        is requested.

        :param timeout: The maximum time to wait in seconds.
        :type timeout: ``Optional[float]``
        :returns: ``True`` if the token was cancelled during (or before) the
                  wait, ``False`` if the full timeout elapsed.
        :rtype: ``bool``
        """
        return self._event.wait(timeout)


def check_cancel(cancel: Optional[CancelToken]):
    """
    Helper to check an optional ``CancelToken``.

    :param cancel: The token to check, or ``None``.
    :type cancel: ``Optional[CancelToken]``
    """
    if cancel is not None:
        cancel.check()


class SigintCancel:
    """
    Context manager that cancels a ``CancelToken`` when SIGINT is
    delivered, restoring the previous handler on exit.
    """

    def __init__(self, cancel: CancelToken):
        self.cancel = cancel
        self._previous = None

    def _handler(self, _signum, _frame):
        self.cancel.cancel()

    def __enter__(self) -> CancelToken:
        self._previous = signal.signal(signal.SIGINT, self._handler)
        return self.cancel

    def __exit__(self, exc_type, exc_value, traceback):
        signal.signal(signal.SIGINT, self._previous)
        return False
