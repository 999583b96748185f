# Copyright Red Hat
#
# fschron/snapshot/model.py - File Chronicle snapshot data model
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot data model and persisted snapshot files.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from io import RawIOBase
import logging
import json
import lzma
import os

try:
    import zstandard as zstd

    _HAVE_ZSTD = True
except ModuleNotFoundError:
    _HAVE_ZSTD = False

from fschron import (
    FSCHRON_SUBSYSTEM_SNAPSHOT,
    FsChronNotFoundError,
    FsChronSnapshotError,
)

from .options import FilterOptions
from .patterns import normalize_path

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_snapshot(msg, *args, **kwargs):
    """A wrapper for snapshot subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": FSCHRON_SUBSYSTEM_SNAPSHOT}, **kwargs)


#: Snapshot file compression by file name extension
_COMPRESSION_EXTENSIONS: Dict[str, str] = {
    ".zst": "zstd",
    ".xz": "lzma",
}


def format_time(value: datetime) -> str:
    """
    Format an aware ``datetime`` as an ISO-8601 UTC string.

    :param value: The time to format.
    :type value: ``datetime``
    :returns: The ISO-8601 representation of ``value`` in UTC.
    :rtype: ``str``
    """
    return value.astimezone(timezone.utc).isoformat()


def parse_time(value: str) -> datetime:
    """
    Parse an ISO-8601 time string. A trailing ``Z`` is accepted and naive
    values are taken to be UTC.

    :param value: The string to parse.
    :type value: ``str``
    :returns: An aware ``datetime`` in UTC.
    :rtype: ``datetime``
    :raises ValueError: If ``value`` is not a valid ISO-8601 time.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class FileEntry:
    """
    Metadata and content hash for a single regular file in a snapshot.
    """

    #: Path relative to the snapshot root, using ``/`` separators
    relative_path: str
    #: Size in bytes
    length: int
    #: Last modification time (UTC)
    last_modified: datetime
    #: Lowercase hex SHA-256 digest, or the empty string if not hashed
    content_hash: str = ""

    def __post_init__(self):
        object.__setattr__(self, "relative_path", normalize_path(self.relative_path))

    def __str__(self):
        return (
            f"{self.relative_path} ({self.length} bytes, "
            f"{format_time(self.last_modified)}"
            + (f", {self.content_hash})" if self.content_hash else ")")
        )

    @property
    def key(self) -> str:
        """
        The case-folded path used to match entries between snapshots.
        """
        return self.relative_path.casefold()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``FileEntry`` to the persisted representation.

        :returns: A dictionary suitable for JSON encoding.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "relativePath": self.relative_path,
            "length": self.length,
            "lastWriteUtc": format_time(self.last_modified),
            "sha256": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileEntry":
        """
        Build a ``FileEntry`` from the persisted representation.

        :param data: The decoded file object.
        :type data: ``Dict[str, Any]``
        :returns: A new ``FileEntry``.
        :rtype: ``FileEntry``
        :raises FsChronSnapshotError: If ``data`` is malformed.
        """
        if not isinstance(data, dict):
            raise FsChronSnapshotError("Snapshot file entry must be an object")
        try:
            path = data["relativePath"]
            length = data["length"]
            if not isinstance(path, str) or not path:
                raise FsChronSnapshotError(f"Invalid relativePath: {path!r}")
            if not isinstance(length, int) or isinstance(length, bool) or length < 0:
                raise FsChronSnapshotError(f"Invalid length for '{path}': {length!r}")
            return cls(
                relative_path=path,
                length=length,
                last_modified=parse_time(data["lastWriteUtc"]),
                content_hash=str(data.get("sha256") or "").lower(),
            )
        except KeyError as err:
            raise FsChronSnapshotError(f"Missing snapshot file key: {err}") from err
        except (AttributeError, TypeError, ValueError) as err:
            raise FsChronSnapshotError(f"Malformed snapshot file entry: {err}") from err


@dataclass(frozen=True)
class Snapshot:
    """
    An immutable inventory of the regular files under a root directory at a
    point in time.
    """

    #: Time the traversal started (UTC)
    created_at: datetime
    #: Absolute path of the scanned root directory
    root_directory: str
    #: Entries in traversal order
    files: Tuple[FileEntry, ...] = field(default_factory=tuple)
    #: The filter options used to build this snapshot
    options: FilterOptions = field(default_factory=FilterOptions)

    def __post_init__(self):
        if not isinstance(self.files, tuple):
            object.__setattr__(self, "files", tuple(self.files))

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self):
        return iter(self.files)

    def __str__(self):
        return (
            f"Snapshot of {self.root_directory} at {format_time(self.created_at)}: "
            f"{len(self.files)} files, {self.total_size} bytes"
        )

    @property
    def total_size(self) -> int:
        """
        The sum of the lengths of all entries in this snapshot.
        """
        return sum(entry.length for entry in self.files)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``Snapshot`` to the persisted representation.

        :returns: A dictionary suitable for JSON encoding.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "createdAt": format_time(self.created_at),
            "rootDirectory": self.root_directory,
            "files": [entry.to_dict() for entry in self.files],
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """
        Build a ``Snapshot`` from the persisted representation.

        :param data: The decoded snapshot object.
        :type data: ``Dict[str, Any]``
        :returns: A new ``Snapshot``.
        :rtype: ``Snapshot``
        :raises FsChronSnapshotError: If ``data`` is malformed.
        """
        if not isinstance(data, dict):
            raise FsChronSnapshotError("Snapshot data must be an object")
        try:
            files = data["files"]
            if not isinstance(files, list):
                raise FsChronSnapshotError("Snapshot 'files' must be a list")
            return cls(
                created_at=parse_time(data["createdAt"]),
                root_directory=str(data["rootDirectory"]),
                files=tuple(FileEntry.from_dict(entry) for entry in files),
                options=FilterOptions.from_dict(data.get("options") or {}),
            )
        except KeyError as err:
            raise FsChronSnapshotError(f"Missing snapshot key: {err}") from err
        except (AttributeError, TypeError, ValueError) as err:
            raise FsChronSnapshotError(f"Malformed snapshot: {err}") from err

    def json(self, pretty: bool = False) -> str:
        """
        Return a JSON representation of this ``Snapshot``.

        :param pretty: Indent the output for readability.
        :type pretty: ``bool``
        :returns: A JSON string.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=2 if pretty else None)


def _compress_type(path: str) -> Optional[str]:
    """
    Return the compression type for a snapshot file name, or ``None``.
    """
    _, ext = os.path.splitext(path)
    compress = _COMPRESSION_EXTENSIONS.get(ext.lower())
    if compress == "zstd" and not _HAVE_ZSTD:
        raise FsChronSnapshotError(
            f"Cannot use '{path}': zstd support not available"
        )
    return compress


def write_snapshot_data(path: str, data: bytes):
    """
    Write encoded snapshot ``data`` to ``path``, compressing it with
    zstandard for ``*.zst`` names and with lzma for ``*.xz`` names.

    :param path: The destination file path.
    :type path: ``str``
    :param data: The encoded snapshot.
    :type data: ``bytes``
    :raises FsChronSnapshotError: If the file cannot be written.
    """
    compress = _compress_type(path)

    def _write(writer: RawIOBase):
        writer.write(data)

    try:
        if compress == "zstd":
            cctx = zstd.ZstdCompressor()
            with open(path, "wb") as fc:
                with cctx.stream_writer(fc) as compressor:
                    _write(compressor)
        elif compress == "lzma":
            with lzma.LZMAFile(filename=path, mode="wb") as compressor:
                _write(compressor)
        else:
            with open(path, "wb") as fp:
                _write(fp)
    except OSError as err:
        raise FsChronSnapshotError(f"Error writing snapshot '{path}': {err}") from err
    _log_debug_snapshot(
        "Wrote %d bytes to %s (compression=%s)", len(data), path, compress
    )


def save_snapshot(snapshot: Snapshot, path: str):
    """
    Write ``snapshot`` to ``path`` as JSON. Files named ``*.zst`` are
    compressed with zstandard and files named ``*.xz`` with lzma.

    :param snapshot: The snapshot to save.
    :type snapshot: ``Snapshot``
    :param path: The destination file path.
    :type path: ``str``
    :raises FsChronSnapshotError: If the file cannot be written.
    """
    write_snapshot_data(path, snapshot.json(pretty=True).encode("utf8"))
    _log_debug_snapshot("Saved snapshot with %d files to %s", len(snapshot), path)


def load_snapshot(path: str) -> Snapshot:
    """
    Load a snapshot previously written by ``save_snapshot()``.

    :param path: The snapshot file path.
    :type path: ``str``
    :returns: The loaded snapshot.
    :rtype: ``Snapshot``
    :raises FsChronNotFoundError: If ``path`` does not exist.
    :raises FsChronSnapshotError: If the file cannot be read or decoded.
    """
    if not os.path.exists(path):
        raise FsChronNotFoundError(f"Snapshot file not found: {path}")

    compress = _compress_type(path)
    uncompress_errors: Tuple[type, ...] = (lzma.LZMAError,)
    if _HAVE_ZSTD:
        uncompress_errors += (zstd.ZstdError,)

    try:
        if compress == "zstd":
            dctx = zstd.ZstdDecompressor()
            with open(path, "rb") as fp:
                with dctx.stream_reader(fp) as reader:
                    raw = reader.read()
        elif compress == "lzma":
            with lzma.LZMAFile(filename=path, mode="rb") as reader:
                raw = reader.read()
        else:
            with open(path, "rb") as fp:
                raw = fp.read()
        data = json.loads(raw.decode("utf8"))
    except (OSError, EOFError, UnicodeDecodeError, *uncompress_errors) as err:
        raise FsChronSnapshotError(f"Error reading snapshot '{path}': {err}") from err
    except json.JSONDecodeError as err:
        raise FsChronSnapshotError(f"Invalid snapshot JSON in '{path}': {err}") from err

    snapshot = Snapshot.from_dict(data)
    _log_debug_snapshot("Loaded snapshot with %d files from %s", len(snapshot), path)
    return snapshot


def entries_by_key(snapshot: Snapshot) -> Dict[str, FileEntry]:
    """
    Map the entries of ``snapshot`` by case-folded relative path. When two
    entries collide the later one wins.

    :param snapshot: The snapshot to index.
    :type snapshot: ``Snapshot``
    :returns: A dictionary mapping keys to entries.
    :rtype: ``Dict[str, FileEntry]``
    """
    index: Dict[str, FileEntry] = {}
    for entry in snapshot.files:
        if entry.key in index:
            _log_debug_snapshot(
                "Duplicate path '%s' in snapshot of %s: keeping last entry",
                entry.relative_path,
                snapshot.root_directory,
            )
        index[entry.key] = entry
    return index


__all__ = [
    "FileEntry",
    "Snapshot",
    "entries_by_key",
    "format_time",
    "load_snapshot",
    "parse_time",
    "save_snapshot",
    "write_snapshot_data",
]
