# Copyright Red Hat
#
# fschron/snapshot/engine.py - File Chronicle snapshot diff engine
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot comparison: classification of files as added, removed, changed or
unchanged between two snapshots.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import logging
import json

from fschron import (
    FSCHRON_SUBSYSTEM_SNAPSHOT,
    format_bytes,
    format_signed_bytes,
    format_size_diff,
)
from fschron.progress import TermControl

from .model import FileEntry, Snapshot, entries_by_key, format_time

_log = logging.getLogger(__name__)

_log_debug = _log.debug


def _log_debug_snapshot(msg, *args, **kwargs):
    """A wrapper for snapshot subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": FSCHRON_SUBSYSTEM_SNAPSHOT}, **kwargs)


#: Number of unchanged files listed by ``DiffResult.report()``
_MAX_UNCHANGED_REPORT = 10

#: Timestamp format for report output
_REPORT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class DiffType(Enum):
    """
    Classification of a path between two snapshots.
    """

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ChangedPair:
    """
    The old and new entries for a path present in both snapshots whose
    content or length differs.
    """

    old: FileEntry
    new: FileEntry

    @property
    def path(self) -> str:
        """
        The relative path of this change, as recorded in the new snapshot.
        """
        return self.new.relative_path

    @property
    def size_delta(self) -> int:
        """
        The change in length from ``old`` to ``new``.
        """
        return self.new.length - self.old.length

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``ChangedPair`` to a dictionary.

        :returns: A dictionary with ``old`` and ``new`` entry dictionaries.
        :rtype: ``Dict[str, Any]``
        """
        return {"old": self.old.to_dict(), "new": self.new.to_dict()}


def _is_changed(old: FileEntry, new: FileEntry) -> bool:
    """
    Return ``True`` if ``old`` and ``new`` differ in length, or in content
    hash when both entries carry one.
    """
    if old.length != new.length:
        return True
    if old.content_hash and new.content_hash:
        return old.content_hash.lower() != new.content_hash.lower()
    return False


@dataclass
class DiffResult:
    """
    Container for snapshot diff results with formatting methods.
    """

    old_snapshot: Snapshot
    new_snapshot: Snapshot
    added: List[FileEntry] = field(default_factory=list)
    removed: List[FileEntry] = field(default_factory=list)
    changed: List[ChangedPair] = field(default_factory=list)
    unchanged: List[FileEntry] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"DiffResult(added={len(self.added)}, removed={len(self.removed)}, "
            f"changed={len(self.changed)}, unchanged={len(self.unchanged)})"
        )

    def __len__(self) -> int:
        return self.total_changes

    @property
    def total_changes(self) -> int:
        """
        Return the total number of added, removed and changed paths.

        :returns: Count of changes.
        :rtype: ``int``
        """
        return len(self.added) + len(self.removed) + len(self.changed)

    @property
    def has_changes(self) -> bool:
        """
        ``True`` if any path was added, removed or changed.
        """
        return self.total_changes > 0

    @property
    def size_delta(self) -> int:
        """
        Return the net change in total size between the two snapshots,
        considering only the classified paths.

        :returns: Size change in bytes.
        :rtype: ``int``
        """
        return (
            sum(entry.length for entry in self.added)
            - sum(entry.length for entry in self.removed)
            + sum(pair.size_delta for pair in self.changed)
        )

    def paths(self) -> Dict[DiffType, List[str]]:
        """
        Return the relative paths of this result by classification.

        :returns: A dictionary mapping ``DiffType`` to path lists.
        :rtype: ``Dict[DiffType, List[str]]``
        """
        return {
            DiffType.ADDED: [entry.relative_path for entry in self.added],
            DiffType.REMOVED: [entry.relative_path for entry in self.removed],
            DiffType.CHANGED: [pair.path for pair in self.changed],
            DiffType.UNCHANGED: [entry.relative_path for entry in self.unchanged],
        }

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``DiffResult`` to the exported representation.

        :returns: A dictionary suitable for JSON encoding.
        :rtype: ``Dict[str, Any]``
        """
        data = {
            "oldSnapshot": {
                "createdAt": format_time(self.old_snapshot.created_at),
                "rootDirectory": self.old_snapshot.root_directory,
            },
            "newSnapshot": {
                "createdAt": format_time(self.new_snapshot.created_at),
                "rootDirectory": self.new_snapshot.root_directory,
            },
            "summary": {
                "added": len(self.added),
                "removed": len(self.removed),
                "changed": len(self.changed),
                "unchanged": len(self.unchanged),
                "totalChanges": self.total_changes,
                "sizeDelta": self.size_delta,
            },
            "added": [entry.to_dict() for entry in self.added],
            "removed": [entry.to_dict() for entry in self.removed],
            "changed": [pair.to_dict() for pair in self.changed],
        }
        if self.unchanged:
            data["unchanged"] = [entry.to_dict() for entry in self.unchanged]
        return data

    def json(self, pretty: bool = False) -> str:
        """
        Return a JSON representation of this ``DiffResult``.

        :param pretty: Indent the output for readability.
        :type pretty: ``bool``
        :returns: JSON string description of the snapshot changes.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=2 if pretty else None)

    def summary(
        self, color: str = "auto", term_control: Optional[TermControl] = None
    ) -> str:
        """
        Return a summary of this ``DiffResult`` instance.

        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        :param term_control: An optional ``TermControl`` instance to use for
                             formatting. The supplied instance overrides any
                             ``color`` argument if set.
        :type term_control: ``Optional[TermControl]``
        :returns: A string summarizing this instance.
        :rtype: ``str``
        """
        tc = term_control or TermControl(color=color)
        return (
            f"Summary:\n"
            f"  {tc.GREEN + 'Added:  ' + tc.NORMAL}  {len(self.added)} files\n"
            f"  {tc.RED + 'Removed:' + tc.NORMAL}  {len(self.removed)} files\n"
            f"  {tc.YELLOW + 'Changed:' + tc.NORMAL}  {len(self.changed)} files"
        )

    # pylint: disable=too-many-branches
    def report(
        self,
        detailed: bool = False,
        color: str = "auto",
        term_control: Optional[TermControl] = None,
    ) -> str:
        """
        Return a full human readable report of this ``DiffResult``: the
        summary, the lists of added, removed and changed files, up to ten
        unchanged files, and the totals.

        :param detailed: Include sizes and modification times.
        :type detailed: ``bool``
        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        :param term_control: An optional ``TermControl`` instance to use for
                             formatting. The supplied instance overrides any
                             ``color`` argument if set.
        :type term_control: ``Optional[TermControl]``
        :returns: A multi-line report string.
        :rtype: ``str``
        """
        tc = term_control or TermControl(color=color)
        old_time = self.old_snapshot.created_at.strftime(_REPORT_TIME_FORMAT)
        new_time = self.new_snapshot.created_at.strftime(_REPORT_TIME_FORMAT)
        lines = [
            f"Old: {self.old_snapshot.root_directory}",
            f"     {old_time} UTC",
            f"New: {self.new_snapshot.root_directory}",
            f"     {new_time} UTC",
            "",
            self.summary(term_control=tc),
            "",
        ]

        if self.added:
            lines.append(f"{tc.GREEN}Added files ({len(self.added)}):{tc.NORMAL}")
            for entry in self.added:
                if detailed:
                    lines.append(
                        f"  + {entry.relative_path} ({format_bytes(entry.length)})"
                    )
                else:
                    lines.append(f"  {tc.GREEN}+ {entry.relative_path}{tc.NORMAL}")
            lines.append("")

        if self.removed:
            lines.append(f"{tc.RED}Removed files ({len(self.removed)}):{tc.NORMAL}")
            for entry in self.removed:
                if detailed:
                    lines.append(
                        f"  - {entry.relative_path} ({format_bytes(entry.length)})"
                    )
                else:
                    lines.append(f"  {tc.RED}- {entry.relative_path}{tc.NORMAL}")
            lines.append("")

        if self.changed:
            lines.append(
                f"{tc.YELLOW}Changed files ({len(self.changed)}):{tc.NORMAL}"
            )
            for pair in self.changed:
                lines.append(f"  {tc.YELLOW}* {pair.old.relative_path}{tc.NORMAL}")
                if detailed:
                    old_size = format_bytes(pair.old.length)
                    new_size = format_bytes(pair.new.length)
                    size_diff = format_size_diff(pair.old.length, pair.new.length)
                    modified = pair.new.last_modified.strftime(_REPORT_TIME_FORMAT)
                    lines.append(f"    Size: {old_size} -> {new_size} ({size_diff})")
                    lines.append(f"    Modified: {modified} UTC")
            lines.append("")

        if self.unchanged:
            lines.append(f"Unchanged files ({len(self.unchanged)}):")
            for entry in self.unchanged[:_MAX_UNCHANGED_REPORT]:
                lines.append(f"  = {entry.relative_path}")
            if len(self.unchanged) > _MAX_UNCHANGED_REPORT:
                more = len(self.unchanged) - _MAX_UNCHANGED_REPORT
                lines.append(f"  ... and {more} more")
            lines.append("")

        lines.append(f"Total changes: {self.total_changes}")
        lines.append(f"Size change  : {format_signed_bytes(self.size_delta)}")
        return "\n".join(lines)


class DiffEngine:
    """
    Core class for comparing snapshots.
    """

    def compute_diff(
        self, old: Snapshot, new: Snapshot, show_unchanged: bool = False
    ) -> DiffResult:
        """
        Classify every path of ``old`` and ``new``.

        Entries are matched by case-folded relative path. A path only in
        ``new`` is added, a path only in ``old`` is removed, and a path in
        both is changed when its length differs or, if both entries were
        hashed, when its content hash differs. Added, changed and unchanged
        entries appear in ``new`` order; removed entries in ``old`` order.

        :param old: The earlier snapshot.
        :type old: ``Snapshot``
        :param new: The later snapshot.
        :type new: ``Snapshot``
        :param show_unchanged: Populate ``DiffResult.unchanged``.
        :type show_unchanged: ``bool``
        :returns: The classified result.
        :rtype: ``DiffResult``
        """
        old_index = entries_by_key(old)
        new_index = entries_by_key(new)

        result = DiffResult(old_snapshot=old, new_snapshot=new)

        for key, new_entry in new_index.items():
            old_entry = old_index.get(key)
            if old_entry is None:
                result.added.append(new_entry)
            elif _is_changed(old_entry, new_entry):
                result.changed.append(ChangedPair(old_entry, new_entry))
            elif show_unchanged:
                result.unchanged.append(new_entry)

        for key, old_entry in old_index.items():
            if key not in new_index:
                result.removed.append(old_entry)

        _log_debug_snapshot(
            "Compared %s (%d files) with %s (%d files): %r",
            old.root_directory,
            len(old),
            new.root_directory,
            len(new),
            result,
        )
        return result


def compute_diff(
    old: Snapshot, new: Snapshot, show_unchanged: bool = False
) -> DiffResult:
    """
    Compare two snapshots.

    :param old: The earlier snapshot.
    :type old: ``Snapshot``
    :param new: The later snapshot.
    :type new: ``Snapshot``
    :param show_unchanged: Populate ``DiffResult.unchanged``.
    :type show_unchanged: ``bool``
    :returns: The classified result.
    :rtype: ``DiffResult``
    """
    return DiffEngine().compute_diff(old, new, show_unchanged=show_unchanged)


__all__ = [
    "ChangedPair",
    "DiffEngine",
    "DiffResult",
    "DiffType",
    "compute_diff",
]
