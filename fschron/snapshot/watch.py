# Copyright Red Hat
#
# fschron/snapshot/watch.py - File Chronicle polling watch loop
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Poll a directory tree and report changes between successive snapshots.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional, Tuple
from enum import Enum
import logging

from fschron import (
    FSCHRON_SUBSYSTEM_WATCH,
    FsChronCancelledError,
    FsChronStateError,
)

from .cancel import CancelToken
from .engine import DiffEngine, DiffResult
from .model import Snapshot
from .options import FilterOptions
from .treewalk import TreeWalker

_log = logging.getLogger(__name__)

_log_info = _log.info


def _log_debug_watch(msg, *args, **kwargs):
    """A wrapper for watch subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": FSCHRON_SUBSYSTEM_WATCH}, **kwargs)


#: Default polling interval in seconds
DEFAULT_WATCH_INTERVAL = 5


class WatchState(Enum):
    """
    States of a ``WatchLoop``.
    """

    IDLE = "idle"
    SCANNING = "scanning"
    COMPARING = "comparing"
    REPORTING = "reporting"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ChangeNotification:
    """
    The paths that changed during one watch cycle.
    """

    #: Local time the change was detected
    timestamp: datetime
    added: Tuple[str, ...] = field(default_factory=tuple)
    removed: Tuple[str, ...] = field(default_factory=tuple)
    changed: Tuple[str, ...] = field(default_factory=tuple)

    def __str__(self):
        lines = [f"[{self.timestamp.strftime('%H:%M:%S')}] Changes detected:"]
        lines.extend(f"  + {path}" for path in self.added)
        lines.extend(f"  - {path}" for path in self.removed)
        lines.extend(f"  * {path}" for path in self.changed)
        return "\n".join(lines)

    @classmethod
    def from_diff(cls, diff: DiffResult) -> "ChangeNotification":
        """
        Build a ``ChangeNotification`` from the changed paths of ``diff``.

        :param diff: The diff for this cycle.
        :type diff: ``DiffResult``
        :returns: A new ``ChangeNotification`` stamped with the current time.
        :rtype: ``ChangeNotification``
        """
        return cls(
            timestamp=datetime.now(),
            added=tuple(entry.relative_path for entry in diff.added),
            removed=tuple(entry.relative_path for entry in diff.removed),
            changed=tuple(pair.path for pair in diff.changed),
        )

    @property
    def total_changes(self) -> int:
        """
        The number of paths in this notification.
        """
        return len(self.added) + len(self.removed) + len(self.changed)


class WatchLoop:
    """
    Repeatedly snapshot a directory tree, reporting the differences between
    each snapshot and the one before it.

    Only the most recent snapshot is retained between cycles.
    """

    def __init__(
        self,
        root: str,
        options: Optional[FilterOptions] = None,
        interval: float = DEFAULT_WATCH_INTERVAL,
        cancel: Optional[CancelToken] = None,
    ):
        """
        Initialise a new ``WatchLoop``.

        :param root: The directory to watch.
        :type root: ``str``
        :param options: Filter options for each scan.
        :type options: ``Optional[FilterOptions]``
        :param interval: Seconds to sleep between scans.
        :type interval: ``float``
        :param cancel: Token used to stop the loop.
        :type cancel: ``Optional[CancelToken]``
        :raises ValueError: If ``interval`` is not positive.
        """
        if interval <= 0:
            raise ValueError(f"Watch interval must be positive: {interval}")
        self.root: str = root
        self.options: FilterOptions = options or FilterOptions()
        self.interval: float = interval
        self.cancel: CancelToken = cancel or CancelToken()
        self.state: WatchState = WatchState.IDLE
        self.snapshot: Optional[Snapshot] = None
        self._walker = TreeWalker(self.options)
        self._engine = DiffEngine()

    def __repr__(self) -> str:
        return (
            f"WatchLoop({self.root!r}, {self.options!r}, "
            f"interval={self.interval}, cancel={self.cancel!r})"
        )

    def _set_state(self, state: WatchState):
        _log_debug_watch("Watch state %s -> %s", self.state.value, state.value)
        self.state = state

    def _scan(self) -> Snapshot:
        self._set_state(WatchState.SCANNING)
        return self._walker.snapshot(
            self.root, cancel=self.cancel, quiet=not self.options.show_progress
        )

    def run(self) -> Iterator[ChangeNotification]:
        """
        Run the watch loop, yielding a ``ChangeNotification`` for each cycle
        in which something changed. The first scan establishes the baseline
        and is never reported.

        The generator returns when the cancel token is set, either while
        sleeping or while scanning.

        :returns: An iterator over change notifications.
        :rtype: ``Iterator[ChangeNotification]``
        :raises FsChronStateError: If this loop has already run.
        :raises FsChronPathError: If ``root`` is not an existing directory.
        """
        if self.state != WatchState.IDLE:
            raise FsChronStateError(
                f"Watch loop is not idle (state={self.state.value})"
            )

        _log_info(
            "Watching %s every %s seconds (cancel with Ctrl+C)",
            self.root,
            self.interval,
        )
        try:
            self.snapshot = self._scan()
            while True:
                self._set_state(WatchState.SLEEPING)
                if self.cancel.wait(self.interval):
                    break

                current = self._scan()

                self._set_state(WatchState.COMPARING)
                diff = self._engine.compute_diff(self.snapshot, current)
                self.snapshot = current

                if diff.has_changes:
                    self._set_state(WatchState.REPORTING)
                    yield ChangeNotification.from_diff(diff)
        except FsChronCancelledError:
            _log_debug_watch("Watch of %s cancelled during scan", self.root)
        finally:
            self._set_state(WatchState.STOPPED)


def watch(
    root: str,
    options: Optional[FilterOptions] = None,
    interval: float = DEFAULT_WATCH_INTERVAL,
    cancel: Optional[CancelToken] = None,
) -> Iterator[ChangeNotification]:
    """
    Watch the directory tree at ``root`` for changes.

    :param root: The directory to watch.
    :type root: ``str``
    :param options: Filter options for each scan.
    :type options: ``Optional[FilterOptions]``
    :param interval: Seconds to sleep between scans.
    :type interval: ``float``
    :param cancel: Token used to stop the watch.
    :type cancel: ``Optional[CancelToken]``
    :returns: An iterator over change notifications.
    :rtype: ``Iterator[ChangeNotification]``
    """
    return WatchLoop(root, options, interval=interval, cancel=cancel).run()


__all__ = [
    "ChangeNotification",
    "DEFAULT_WATCH_INTERVAL",
    "WatchLoop",
    "WatchState",
    "watch",
]
