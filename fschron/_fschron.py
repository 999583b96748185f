# Copyright Red Hat
#
# fschron/_fschron.py - File Chronicle global definitions
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level fschron package.
"""
from typing import Optional, TextIO, TYPE_CHECKING
import logging
import weakref
import sys

if TYPE_CHECKING:
    from .progress import ProgressBase

_log = logging.getLogger("fschron")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Fschron debugging subsystem mask
FSCHRON_DEBUG_SNAPSHOT = 1
FSCHRON_DEBUG_WATCH = 2
FSCHRON_DEBUG_COMMAND = 4
FSCHRON_DEBUG_CONFIG = 8
FSCHRON_DEBUG_ALL = (
    FSCHRON_DEBUG_SNAPSHOT
    | FSCHRON_DEBUG_WATCH
    | FSCHRON_DEBUG_COMMAND
    | FSCHRON_DEBUG_CONFIG
)

# Fschron debugging subsystem names
FSCHRON_SUBSYSTEM_SNAPSHOT = "fschron.snapshot"
FSCHRON_SUBSYSTEM_WATCH = "fschron.watch"
FSCHRON_SUBSYSTEM_COMMAND = "fschron.command"
FSCHRON_SUBSYSTEM_CONFIG = "fschron.config"

_DEBUG_MASK_TO_SUBSYSTEM = {
    FSCHRON_DEBUG_SNAPSHOT: FSCHRON_SUBSYSTEM_SNAPSHOT,
    FSCHRON_DEBUG_WATCH: FSCHRON_SUBSYSTEM_WATCH,
    FSCHRON_DEBUG_COMMAND: FSCHRON_SUBSYSTEM_COMMAND,
    FSCHRON_DEBUG_CONFIG: FSCHRON_SUBSYSTEM_CONFIG,
}

_debug_subsystems = set()

# Registry of active progress instances: uses a WeakSet so we don't prevent
# garbage collection.
_active_progress: weakref.WeakSet = weakref.WeakSet()

#: Units used by ``format_bytes()``: all expressed in powers of two.
_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the current debug mask for the ``fschron`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    fschron_log = logging.getLogger("fschron")

    for handler in fschron_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Set the debug mask for the ``fschron`` package.

    :param mask: the logical OR of the ``FSCHRON_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > FSCHRON_DEBUG_ALL:
        raise ValueError(f"Invalid fschron debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    fschron_log = logging.getLogger("fschron")
    for handler in fschron_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


def register_progress(progress: "ProgressBase"):
    """Register a progress instance for log coordination."""
    _active_progress.add(progress)
    progress.registered = True


def unregister_progress(progress: "ProgressBase"):
    """Unregister a progress instance."""
    _active_progress.discard(progress)
    progress.registered = False


def notify_log_output(stream: TextIO):
    """
    Notify progress instances that log output occurred on stream.

    Called by ProgressAwareHandler after emitting a record.

    :param stream: The stream that received output.
    :type stream: ``TextIO``
    """
    if stream not in (sys.stdout, sys.stderr):
        return
    for progress in list(_active_progress):
        if hasattr(progress, "reset_position"):
            progress.reset_position()


class ProgressAwareHandler(logging.StreamHandler):
    """
    A logging handler that coordinates with active Progress instances.

    After emitting a log record, notifies any Progress instances writing
    to the same stream so they can avoid erasing the log message.
    """

    def __init__(self, stream: Optional[TextIO] = None, **kwargs):
        super().__init__(stream=stream or sys.stderr, **kwargs)

    def emit(self, record):
        try:
            msg = self.format(record)
            self.stream.write(msg + "\n")
            self.stream.flush()
            notify_log_output(self.stream)
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)


#
# Fschron exception types
#


class FsChronError(Exception):
    """
    Base class for fschron errors.
    """


class FsChronCancelledError(FsChronError):
    """
    The operation was cancelled before it completed: no partial result
    is available.
    """


class FsChronPathError(FsChronError):
    """
    An invalid path was supplied, for example a snapshot root that does not
    exist or is not a directory.
    """


class FsChronNotFoundError(FsChronError):
    """
    The requested object does not exist.
    """


class FsChronSnapshotError(FsChronError):
    """
    A persisted snapshot could not be read or is malformed.
    """


class FsChronArgumentError(FsChronError):
    """
    An invalid argument was passed to an fschron API call.
    """


class FsChronStateError(FsChronError):
    """
    The status of an object does not allow an operation to proceed.
    """


class FsChronConfigError(FsChronError):
    """
    The configuration file contains an invalid value.
    """


def _format_number(value: float) -> str:
    """
    Format ``value`` with at most two decimal places and no trailing zeros.
    """
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text if text != "-0" else "0"


def format_bytes(value: int) -> str:
    """
    Format a size in bytes as a human readable string.

    :param value: The non-negative integer value to format.
    :returns: A human readable string reflecting value, e.g. "1.5 KB".
    :rtype: ``str``
    """
    size = float(value)
    order = 0
    while size >= 1024 and order < len(_BYTE_UNITS) - 1:
        order += 1
        size /= 1024
    return f"{_format_number(size)} {_BYTE_UNITS[order]}"


def format_signed_bytes(value: int) -> str:
    """
    Format a size delta in bytes with an explicit sign.

    :param value: The integer delta to format.
    :returns: A string such as "+7 B" or "-1.5 KB".
    :rtype: ``str``
    """
    sign = "+" if value >= 0 else "-"
    return sign + format_bytes(abs(value))


def format_size_diff(old_size: int, new_size: int) -> str:
    """
    Describe the change from ``old_size`` to ``new_size`` as a signed byte
    delta and a percentage of ``old_size``.

    :param old_size: The original size in bytes.
    :param new_size: The updated size in bytes.
    :returns: A string such as "+2 B (+20%)".
    :rtype: ``str``
    """
    delta = new_size - old_size
    percent = (delta * 100.0 / old_size) if old_size > 0 else 0.0
    sign = "+" if percent >= 0 else "-"
    return f"{format_signed_bytes(delta)} ({sign}{_format_number(abs(percent))}%)"


__all__ = [
    "FSCHRON_DEBUG_SNAPSHOT",
    "FSCHRON_DEBUG_WATCH",
    "FSCHRON_DEBUG_COMMAND",
    "FSCHRON_DEBUG_CONFIG",
    "FSCHRON_DEBUG_ALL",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "FSCHRON_SUBSYSTEM_SNAPSHOT",
    "FSCHRON_SUBSYSTEM_WATCH",
    "FSCHRON_SUBSYSTEM_COMMAND",
    "FSCHRON_SUBSYSTEM_CONFIG",
    "set_debug_mask",
    "get_debug_mask",
    # Progress log callbacks
    "register_progress",
    "unregister_progress",
    "notify_log_output",
    "ProgressAwareHandler",
    "FsChronError",
    "FsChronCancelledError",
    "FsChronPathError",
    "FsChronNotFoundError",
    "FsChronSnapshotError",
    "FsChronArgumentError",
    "FsChronStateError",
    "FsChronConfigError",
    "format_bytes",
    "format_signed_bytes",
    "format_size_diff",
]
