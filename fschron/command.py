# Copyright Red Hat
#
# fschron/command.py - File Chronicle command line interface
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``fschron`` command line interface.

This module provides the ``fschron`` command: it parses command line
arguments, sets up logging and configuration, and dispatches each
sub-command to a ``_<name>_cmd()`` handler returning an integer exit
status.
"""
from argparse import ArgumentParser
from dataclasses import replace
from os.path import basename, dirname
import logging
import sys
import os

from fschron import (
    __version__,
    FSCHRON_DEBUG_SNAPSHOT,
    FSCHRON_DEBUG_WATCH,
    FSCHRON_DEBUG_COMMAND,
    FSCHRON_DEBUG_CONFIG,
    FSCHRON_DEBUG_ALL,
    FSCHRON_SUBSYSTEM_COMMAND,
    FsChronCancelledError,
    SubsystemFilter,
    ProgressAwareHandler,
    set_debug_mask,
    format_bytes,
)
from fschron.config import FsChronConfig
from fschron.progress import COLOR_MODES, TermControl
from fschron.snapshot import (
    DIFF_FORMATS,
    SNAPSHOT_FORMATS,
    CancelToken,
    DiffOptions,
    FilterOptions,
    SigintCancel,
    TreeWalker,
    compute_diff,
    get_renderer,
    load_snapshot,
    save_snapshot,
    watch,
    write_snapshot_data,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": FSCHRON_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None

SNAPSHOT_CMD = "snapshot"
DIFF_CMD = "diff"
COMPARE_CMD = "compare"
WATCH_CMD = "watch"


def _color_mode(cmd_args) -> str:
    """
    Return the effective color mode: the ``--color`` argument if given,
    otherwise "auto" or "never" according to the configuration.
    """
    if cmd_args.color:
        return cmd_args.color
    return "auto" if cmd_args.config.colored_output else "never"


def _filter_options(cmd_args) -> FilterOptions:
    """
    Build ``FilterOptions`` from command line arguments and configuration.
    """
    config = cmd_args.config
    options = FilterOptions.from_cmd_args(cmd_args).with_defaults(config)
    if "format" not in cmd_args:
        return options
    fmt = cmd_args.format or config.default_format
    if fmt not in SNAPSHOT_FORMATS:
        _log_warn("Format '%s' not supported for snapshots: using json", fmt)
        fmt = "json"
    return replace(options, format=fmt)


def _write_output(path: str, data: bytes):
    """
    Write ``data`` to ``path``, creating the parent directory if needed.
    """
    parent = dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)
    with open(path, "wb") as fp:
        fp.write(data)


def _take_snapshot(root, options, cancel, term_control):
    """
    Snapshot ``root`` and return the snapshot with its ``WalkStats``.
    """
    walker = TreeWalker(options)
    snapshot = walker.snapshot(
        root,
        cancel=cancel,
        quiet=not options.show_progress,
        term_control=term_control,
    )
    if walker.stats.failed:
        _log_warn("%d paths under %s could not be read", walker.stats.failed, root)
    return snapshot, walker.stats


def _snapshot_cmd(cmd_args):
    """
    Snapshot command handler.

    Inventory a directory tree and write the snapshot to a file.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    options = _filter_options(cmd_args)
    term_control = TermControl(color=_color_mode(cmd_args))
    _log_debug_command("Snapshot options:\n%s", options)

    with SigintCancel(CancelToken()) as cancel:
        try:
            snapshot, stats = _take_snapshot(
                cmd_args.directory, options, cancel, term_control
            )
        except FsChronCancelledError:
            _log_error("Snapshot of %s cancelled", cmd_args.directory)
            return 1

    os.makedirs(dirname(os.path.abspath(cmd_args.output)), exist_ok=True)
    if options.format == "json":
        save_snapshot(snapshot, cmd_args.output)
    else:
        write_snapshot_data(
            cmd_args.output, get_renderer(options.format).render(snapshot)
        )

    print(f"Snapshot saved: {cmd_args.output}")
    print(f"  Files tracked: {stats.tracked}")
    print(f"  Files skipped: {stats.skipped}")
    print(f"  Files failed:  {stats.failed}")
    print(f"  Total size:    {format_bytes(snapshot.total_size)}")
    return 0


def _diff_cmd(cmd_args):
    """
    Diff command handler.

    Compare two saved snapshots and optionally export the result.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    options = DiffOptions.from_cmd_args(cmd_args)
    fmt = options.format if cmd_args.format else cmd_args.config.default_format
    old = load_snapshot(cmd_args.old_snapshot)
    new = load_snapshot(cmd_args.new_snapshot)

    result = compute_diff(old, new, show_unchanged=options.show_unchanged)
    print(result.report(detailed=options.detailed, color=_color_mode(cmd_args)))

    if options.output_file:
        _write_output(options.output_file, get_renderer(fmt).render(result))
        print(f"\nDiff exported to: {options.output_file}")
    return 0


def _compare_cmd(cmd_args):
    """
    Compare command handler.

    Snapshot two live directory trees and compare them.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    options = _filter_options(cmd_args)
    color = _color_mode(cmd_args)
    term_control = TermControl(color=color)

    with SigintCancel(CancelToken()) as cancel:
        try:
            old, old_stats = _take_snapshot(
                cmd_args.dir1, options, cancel, term_control
            )
            new, new_stats = _take_snapshot(
                cmd_args.dir2, options, cancel, term_control
            )
        except FsChronCancelledError:
            _log_error("Comparison cancelled")
            return 1

    print(f"Scanned {old.root_directory}: {old_stats}")
    print(f"Scanned {new.root_directory}: {new_stats}")
    result = compute_diff(old, new)
    print(result.report(detailed=cmd_args.detailed, term_control=term_control))
    return 0


def _watch_cmd(cmd_args):
    """
    Watch command handler.

    Poll a directory tree and print the changes found in each cycle until
    interrupted.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    options = _filter_options(cmd_args)
    interval = cmd_args.interval or cmd_args.config.watch_interval

    print(f"Watching {cmd_args.directory} every {interval}s (Ctrl+C to stop)")
    with SigintCancel(CancelToken()) as cancel:
        for notification in watch(cmd_args.directory, options, interval, cancel):
            print(notification, flush=True)
    print("Stopped watching.")
    return 0


def setup_logging(cmd_args):
    """
    Set up fschron logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    fschron_log = logging.getLogger("fschron")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    fschron_log.setLevel(level)
    if fschron_log.hasHandlers():
        fschron_log.handlers.clear()

    # Subsystem log filtering
    _fschron_subsystem_filter = SubsystemFilter("fschron")

    # Main console handler
    _CONSOLE_HANDLER = ProgressAwareHandler()

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_fschron_subsystem_filter)

    fschron_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down fschron logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "snapshot": FSCHRON_DEBUG_SNAPSHOT,
        "watch": FSCHRON_DEBUG_WATCH,
        "command": FSCHRON_DEBUG_COMMAND,
        "config": FSCHRON_DEBUG_CONFIG,
        "all": FSCHRON_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_filter_args(parser):
    parser.add_argument(
        "-i",
        "--include",
        dest="include_patterns",
        metavar="PATTERN",
        action="append",
        help="Include only files matching PATTERN (may be repeated)",
    )
    parser.add_argument(
        "-x",
        "--exclude",
        dest="exclude_patterns",
        metavar="PATTERN",
        action="append",
        help="Exclude files matching PATTERN (may be repeated)",
    )


def _add_scan_args(parser):
    parser.add_argument(
        "-n",
        "--no-hash",
        dest="no_hash",
        action="store_true",
        help="Skip content hashing (compare by size only)",
    )
    parser.add_argument(
        "-P",
        "--progress",
        dest="show_progress",
        action="store_true",
        help="Show progress while scanning",
    )


def _add_snapshot_parser(subparsers):
    snapshot_parser = subparsers.add_parser(
        SNAPSHOT_CMD, help="Create a snapshot of a directory tree"
    )
    snapshot_parser.add_argument(
        "directory", metavar="DIR", type=str, help="The directory to snapshot"
    )
    snapshot_parser.add_argument(
        "output", metavar="OUTPUT", type=str, help="The snapshot file to write"
    )
    _add_filter_args(snapshot_parser)
    snapshot_parser.add_argument(
        "-f",
        "--format",
        choices=SNAPSHOT_FORMATS,
        default=None,
        help="Snapshot output format",
    )
    _add_scan_args(snapshot_parser)
    snapshot_parser.set_defaults(func=_snapshot_cmd)


def _add_diff_parser(subparsers):
    diff_parser = subparsers.add_parser(DIFF_CMD, help="Compare two snapshot files")
    diff_parser.add_argument(
        "old_snapshot", metavar="OLD", type=str, help="The earlier snapshot file"
    )
    diff_parser.add_argument(
        "new_snapshot", metavar="NEW", type=str, help="The later snapshot file"
    )
    diff_parser.add_argument(
        "-o",
        "--output",
        dest="output_file",
        metavar="FILE",
        type=str,
        help="Export the diff to FILE",
    )
    diff_parser.add_argument(
        "-f",
        "--format",
        choices=DIFF_FORMATS,
        default=None,
        help="Diff export format",
    )
    diff_parser.add_argument(
        "-u",
        "--show-unchanged",
        dest="show_unchanged",
        action="store_true",
        help="Include unchanged files",
    )
    diff_parser.add_argument(
        "-D",
        "--detailed",
        action="store_true",
        help="Show sizes and modification times",
    )
    diff_parser.set_defaults(func=_diff_cmd)


def _add_compare_parser(subparsers):
    compare_parser = subparsers.add_parser(
        COMPARE_CMD, help="Compare two directory trees"
    )
    compare_parser.add_argument(
        "dir1", metavar="DIR1", type=str, help="The first directory"
    )
    compare_parser.add_argument(
        "dir2", metavar="DIR2", type=str, help="The second directory"
    )
    _add_filter_args(compare_parser)
    _add_scan_args(compare_parser)
    compare_parser.add_argument(
        "-D",
        "--detailed",
        action="store_true",
        help="Show sizes and modification times",
    )
    compare_parser.set_defaults(func=_compare_cmd)


def _add_watch_parser(subparsers):
    watch_parser = subparsers.add_parser(
        WATCH_CMD, help="Watch a directory tree for changes"
    )
    watch_parser.add_argument(
        "directory", metavar="DIR", type=str, help="The directory to watch"
    )
    _add_filter_args(watch_parser)
    watch_parser.add_argument(
        "-I",
        "--interval",
        metavar="SECONDS",
        type=int,
        default=None,
        help="Seconds between scans",
    )
    _add_scan_args(watch_parser)
    watch_parser.set_defaults(func=_watch_cmd)


def main(args):
    """
    Main entry point for fschron.
    """
    parser = ArgumentParser(description="File Chronicle", prog=basename(args[0]))

    # Global arguments
    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of fschron",
        version=__version__,
    )
    parser.add_argument(
        "-c",
        "--config",
        dest="config_file",
        metavar="CONFIG",
        type=str,
        help="Path to an alternate configuration file",
    )
    parser.add_argument(
        "--color",
        choices=COLOR_MODES,
        default=None,
        help="Control colored output",
    )
    # Subparser for command type
    subparsers = parser.add_subparsers(dest="command", help="Command")

    _add_snapshot_parser(subparsers)

    _add_diff_parser(subparsers)

    _add_compare_parser(subparsers)

    _add_watch_parser(subparsers)

    cmd_args = parser.parse_args(args[1:])

    status = 1

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    if "func" not in cmd_args:
        parser.print_help()
        shutdown_logging()
        return status

    if getattr(cmd_args, "interval", None) is not None and cmd_args.interval <= 0:
        _log_error("Watch interval must be positive: %d", cmd_args.interval)
        shutdown_logging()
        return status

    if cmd_args.debug:
        cmd_args.config = FsChronConfig.from_file(cmd_args.config_file)
        status = cmd_args.func(cmd_args)
    else:
        try:
            cmd_args.config = FsChronConfig.from_file(cmd_args.config_file)
            status = cmd_args.func(cmd_args)
        # pylint: disable=broad-except
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
        except Exception as err:
            _log_error("Command failed: %s", err)

    shutdown_logging()
    return status


def run():
    """
    Console script entry point.
    """
    sys.exit(main(sys.argv))


# vim: set et ts=4 sw=4 :
