# Copyright Red Hat
#
# fschron/snapshot/__init__.py - File Chronicle snapshot engine package
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot and diff engine package.

Provides directory tree snapshots with pattern filtering and content
hashing, snapshot comparison, and a polling watch loop. The main entry
points are ``take_snapshot()``, ``compute_diff()`` and ``watch()``.
"""
from .cancel import CancelToken, SigintCancel
from .engine import ChangedPair, DiffEngine, DiffResult, DiffType, compute_diff
from .model import (
    FileEntry,
    Snapshot,
    load_snapshot,
    save_snapshot,
    write_snapshot_data,
)
from .options import DIFF_FORMATS, SNAPSHOT_FORMATS, DiffOptions, FilterOptions
from .render import Renderer, get_renderer
from .treewalk import TreeWalker, WalkStats, take_snapshot
from .watch import ChangeNotification, WatchLoop, WatchState, watch

__all__ = [
    "CancelToken",
    "ChangeNotification",
    "ChangedPair",
    "DIFF_FORMATS",
    "DiffEngine",
    "DiffOptions",
    "DiffResult",
    "DiffType",
    "FileEntry",
    "FilterOptions",
    "Renderer",
    "SNAPSHOT_FORMATS",
    "SigintCancel",
    "Snapshot",
    "TreeWalker",
    "WalkStats",
    "WatchLoop",
    "WatchState",
    "compute_diff",
    "get_renderer",
    "load_snapshot",
    "save_snapshot",
    "take_snapshot",
    "watch",
    "write_snapshot_data",
]
