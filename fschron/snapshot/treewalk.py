# Copyright Red Hat
#
# fschron/snapshot/treewalk.py - File Chronicle directory tree walk
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tree walking support for snapshots.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
import logging
import stat
import os

from fschron import (
    FSCHRON_SUBSYSTEM_SNAPSHOT,
    FsChronCancelledError,
    FsChronPathError,
)

from fschron.progress import ProgressFactory, TermControl

from .cancel import CancelToken, check_cancel
from .hasher import DEFAULT_HASH, hash_file
from .model import FileEntry, Snapshot
from .options import FilterOptions
from .patterns import is_includable, normalize_path

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_snapshot(msg, *args, **kwargs):
    """A wrapper for snapshot subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": FSCHRON_SUBSYSTEM_SNAPSHOT}, **kwargs)


@dataclass
class WalkStats:
    """
    Counters for a single tree walk.
    """

    #: Files recorded in the snapshot
    tracked: int = 0
    #: Files rejected by the filter or not regular files
    skipped: int = 0
    #: Files and directories that could not be read
    failed: int = 0

    def __str__(self):
        return f"tracked={self.tracked} skipped={self.skipped} failed={self.failed}"


class TreeWalker:
    """
    Directory tree walker that builds ``Snapshot`` objects.
    """

    def __init__(self, options: FilterOptions, hash_algorithm: str = DEFAULT_HASH):
        """
        Initialise a new ``TreeWalker`` object.

        :param options: Options to control this ``TreeWalker`` instance.
        :type options: ``FilterOptions``
        :param hash_algorithm: A string describing the hash algorithm to be
                               used for this ``TreeWalker`` instance.
        :type hash_algorithm: ``str``
        """
        self.options: FilterOptions = options
        self.hash_algorithm: str = hash_algorithm
        self.stats: WalkStats = WalkStats()

    def _gather(self, root: str, cancel: Optional[CancelToken]) -> List[str]:
        """
        Collect the relative paths of all files below ``root`` in a
        deterministic order.

        :param root: The absolute root directory.
        :type root: ``str``
        :param cancel: An optional cancellation token.
        :type cancel: ``Optional[CancelToken]``
        :returns: A list of relative paths using ``/`` separators.
        :rtype: ``List[str]``
        """

        def _onerror(err: OSError):
            _log_warn("Cannot read directory '%s': %s", err.filename, err.strerror)
            self.stats.failed += 1

        to_visit = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=_onerror):
            check_cancel(cancel)
            dirnames.sort()
            for name in sorted(filenames):
                rel_path = os.path.relpath(os.path.join(dirpath, name), root)
                to_visit.append(normalize_path(rel_path))
        return to_visit

    def _process_file(
        self, root: str, rel_path: str, cancel: Optional[CancelToken]
    ) -> Optional[FileEntry]:
        """
        Stat and hash a single file.

        :param root: The absolute root directory.
        :type root: ``str``
        :param rel_path: The path of the file relative to ``root``.
        :type rel_path: ``str``
        :param cancel: An optional cancellation token.
        :type cancel: ``Optional[CancelToken]``
        :returns: A new ``FileEntry``, or ``None`` if the path is not a
                  regular file.
        :rtype: ``Optional[FileEntry]``
        :raises OSError: If the file cannot be examined or read.
        """
        file_path = os.path.join(root, *rel_path.split("/"))
        file_stat = os.stat(file_path)
        if not stat.S_ISREG(file_stat.st_mode):
            _log_debug_snapshot("Skipping non-regular file '%s'", rel_path)
            return None

        content_hash = ""
        if not self.options.no_hash:
            content_hash = hash_file(file_path, cancel, algorithm=self.hash_algorithm)

        return FileEntry(
            relative_path=rel_path,
            length=file_stat.st_size,
            last_modified=datetime.fromtimestamp(file_stat.st_mtime, tz=timezone.utc),
            content_hash=content_hash,
        )

    def snapshot(
        self,
        root: str,
        cancel: Optional[CancelToken] = None,
        quiet: bool = True,
        term_control: Optional[TermControl] = None,
    ) -> Snapshot:
        """
        Walk the directory tree at ``root`` and return a new ``Snapshot``.

        Files that cannot be examined are logged, counted in
        ``self.stats.failed`` and left out of the snapshot. If ``cancel``
        is set during the walk no snapshot is produced.

        :param root: The directory to walk.
        :type root: ``str``
        :param cancel: An optional cancellation token.
        :type cancel: ``Optional[CancelToken]``
        :param quiet: Suppress progress output.
        :type quiet: ``bool``
        :param term_control: Optional pre-initialised terminal control object.
        :type term_control: ``Optional[TermControl]``
        :returns: The completed snapshot.
        :rtype: ``Snapshot``
        :raises FsChronPathError: If ``root`` is not an existing directory.
        :raises FsChronCancelledError: If ``cancel`` is set during the walk.
        """
        root = os.path.abspath(root)
        if not os.path.isdir(root):
            raise FsChronPathError(f"Directory not found: {root}")

        self.stats = WalkStats()
        created_at = datetime.now(timezone.utc)

        _log_info("Gathering paths to scan from %s", root)
        to_visit = self._gather(root, cancel)
        total = len(to_visit)

        progress = ProgressFactory.get_progress(
            f"Scanning {root}",
            quiet=quiet or not self.options.show_progress,
            term_control=term_control,
        )

        start_time = datetime.now()
        if total:
            progress.start(total)

        files = []
        try:
            for i, rel_path in enumerate(to_visit):
                check_cancel(cancel)
                if not is_includable(rel_path, self.options):
                    self.stats.skipped += 1
                    continue

                progress.progress(i, f"Scanning {rel_path}")
                try:
                    entry = self._process_file(root, rel_path, cancel)
                except OSError as err:
                    _log_warn("Cannot read file '%s': %s", rel_path, err)
                    self.stats.failed += 1
                    continue

                if entry is None:
                    self.stats.skipped += 1
                    continue
                files.append(entry)
                self.stats.tracked += 1
        except FsChronCancelledError:
            if progress.total:
                progress.cancel("Cancelled.")
            raise
        except (KeyboardInterrupt, SystemExit):
            if progress.total:
                progress.cancel("Quit!")
            raise

        end_time = datetime.now()
        if progress.total:
            progress.end(
                f"Scanned {total} paths in {end_time - start_time} ({self.stats})"
            )
        _log_debug_snapshot("Snapshot of %s complete: %s", root, self.stats)

        return Snapshot(
            created_at=created_at,
            root_directory=root,
            files=tuple(files),
            options=self.options,
        )


def take_snapshot(
    root: str,
    options: Optional[FilterOptions] = None,
    cancel: Optional[CancelToken] = None,
    quiet: bool = True,
    term_control: Optional[TermControl] = None,
) -> Snapshot:
    """
    Take a snapshot of the directory tree at ``root``.

    :param root: The directory to walk.
    :type root: ``str``
    :param options: Filter options, or ``None`` for the defaults.
    :type options: ``Optional[FilterOptions]``
    :param cancel: An optional cancellation token.
    :type cancel: ``Optional[CancelToken]``
    :param quiet: Suppress progress output.
    :type quiet: ``bool``
    :param term_control: Optional pre-initialised terminal control object.
    :type term_control: ``Optional[TermControl]``
    :returns: The completed snapshot.
    :rtype: ``Snapshot``
    """
    walker = TreeWalker(options or FilterOptions())
    return walker.snapshot(root, cancel=cancel, quiet=quiet, term_control=term_control)


__all__ = [
    "TreeWalker",
    "WalkStats",
    "take_snapshot",
]
