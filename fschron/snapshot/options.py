# Copyright Red Hat
#
# fschron/snapshot/options.py - File Chronicle snapshot and diff options
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot filter options and diff options.
"""
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Tuple, Union, TYPE_CHECKING
from argparse import Namespace
import logging

from fschron import FsChronSnapshotError

if TYPE_CHECKING:
    from fschron.config import FsChronConfig

_log = logging.getLogger(__name__)

_log_debug = _log.debug

#: Snapshot output formats
SNAPSHOT_FORMATS = ("json", "csv")

#: Diff export formats
DIFF_FORMATS = ("json", "csv", "html")


def _from_cmd_args(cls, cmd_args: Namespace):
    """
    Build an instance of the options dataclass ``cls`` from the matching
    attributes of ``cmd_args``. Lists become tuples and ``None`` values
    fall back to the field default.
    """

    def get_value(name: str) -> Union[bool, str, Tuple[str, ...]]:
        attr = getattr(cmd_args, name)
        if isinstance(attr, list):
            return tuple(attr)
        return attr

    field_names = {f.name for f in fields(cls)}
    kwargs = {
        name: get_value(name)
        for name in field_names
        if getattr(cmd_args, name, None) is not None
    }
    return cls(**kwargs)


@dataclass(frozen=True)
class FilterOptions:
    """
    Snapshot traversal options: which files to include and whether to
    compute content hashes.
    """

    #: File patterns to include (glob notation)
    include_patterns: Tuple[str, ...] = field(default_factory=tuple)
    #: File patterns to exclude (glob notation)
    exclude_patterns: Tuple[str, ...] = field(default_factory=tuple)
    #: Skip content hash computation
    no_hash: bool = False
    #: Output format tag
    format: str = "json"
    #: Report per-file progress while walking
    show_progress: bool = False

    def __str__(self):
        """
        Return a human readable string representation of this
        ``FilterOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """
        items = [
            (key, " ".join(val) if isinstance(val, tuple) else val)
            for key, val in self.__dict__.items()
        ]
        return "\n".join(f"{key}={val}" for key, val in items)

    @classmethod
    def from_cmd_args(cls, cmd_args: Namespace) -> "FilterOptions":
        """
        Initialise FilterOptions from command line arguments.

        :param cmd_args: The command line arguments.
        :type cmd_args: ``Namespace``
        :returns: A new ``FilterOptions`` instance
        :rtype: ``FilterOptions``
        """
        options = _from_cmd_args(cls, cmd_args)
        _log_debug("Initialised FilterOptions from arguments: %s", repr(options))
        return options

    def with_defaults(self, config: "FsChronConfig") -> "FilterOptions":
        """
        Return a copy of these options with configuration defaults applied:
        the configured default exclude patterns are used when no exclude
        pattern was given.

        :param config: The effective configuration.
        :type config: ``FsChronConfig``
        :returns: A new ``FilterOptions`` instance.
        :rtype: ``FilterOptions``
        """
        if self.exclude_patterns or not config.default_exclude:
            return self
        return replace(self, exclude_patterns=tuple(config.default_exclude))

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the persisted snapshot representation.
        """
        return {
            "includePatterns": list(self.include_patterns),
            "excludePatterns": list(self.exclude_patterns),
            "format": self.format,
            "noHash": self.no_hash,
            "showProgress": self.show_progress,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterOptions":
        """
        Build ``FilterOptions`` from the persisted snapshot representation.

        :param data: The decoded ``options`` object.
        :type data: ``Dict[str, Any]``
        :returns: A new ``FilterOptions`` instance.
        :rtype: ``FilterOptions``
        :raises FsChronSnapshotError: If ``data`` is malformed.
        """
        if not isinstance(data, dict):
            raise FsChronSnapshotError("Snapshot options must be an object")

        def patterns(key: str) -> Tuple[str, ...]:
            value = data.get(key)
            if value is None:
                return ()
            if not isinstance(value, list) or not all(
                isinstance(pat, str) for pat in value
            ):
                raise FsChronSnapshotError(
                    f"Malformed snapshot options: {key} must be a list of strings"
                )
            return tuple(value)

        def flag(key: str) -> bool:
            value = data.get(key, False)
            if not isinstance(value, bool):
                raise FsChronSnapshotError(
                    f"Malformed snapshot options: {key} must be a boolean"
                )
            return value

        fmt = data.get("format") or "json"
        if not isinstance(fmt, str):
            raise FsChronSnapshotError(
                "Malformed snapshot options: format must be a string"
            )

        return cls(
            include_patterns=patterns("includePatterns"),
            exclude_patterns=patterns("excludePatterns"),
            no_hash=flag("noHash"),
            format=fmt,
            show_progress=flag("showProgress"),
        )


@dataclass(frozen=True)
class DiffOptions:
    """
    Snapshot comparison and reporting options.
    """

    #: Include unchanged files in the result
    show_unchanged: bool = False
    #: Show per-file size and time details
    detailed: bool = False
    #: Export format tag
    format: str = "json"
    #: Optional path to export the diff to
    output_file: str = ""

    @classmethod
    def from_cmd_args(cls, cmd_args: Namespace) -> "DiffOptions":
        """
        Initialise DiffOptions from command line arguments.

        :param cmd_args: The command line arguments.
        :type cmd_args: ``Namespace``
        :returns: A new ``DiffOptions`` instance
        :rtype: ``DiffOptions``
        """
        options = _from_cmd_args(cls, cmd_args)
        _log_debug("Initialised DiffOptions from arguments: %s", repr(options))
        return options
