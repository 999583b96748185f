# Copyright Red Hat
#
# fschron/progress.py - File Chronicle terminal control and progress
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Terminal control and progress indicator
"""
from typing import List, Optional, TextIO
from datetime import datetime, timedelta
from abc import ABC, abstractmethod
import curses
import sys
import os
import re

from fschron import register_progress, unregister_progress

#: Default number of columns if not detected from terminal.
DEFAULT_COLUMNS = 80

#: Minimum width of a progress bar.
PROGRESS_MIN_WIDTH = 10

#: Minimum budget to reserve for status messages
MIN_BUDGET = 10

#: Default width of a progress bar as a fraction of the terminal size.
DEFAULT_WIDTH_FRAC = 0.5

#: Default redraw rate for ``Progress``
DEFAULT_FPS = 10

#: Valid values for the ``color`` argument.
COLOR_MODES = ("auto", "never", "always")


class TermControl:
    """
    Portable terminal control and color output.

    Uses the curses package to look up the control sequences for the
    current terminal. Each attribute holds the sequence for one action,
    or the empty string if the terminal does not support it, so that
    output containing these values still works on dumb terminals and
    pipes:

        >>> term = TermControl()
        >>> print("This is " + term.GREEN + "green" + term.NORMAL)

    The ``render()`` method substitutes ``${NAME}`` templates:

        >>> print(term.render("This is ${GREEN}green${NORMAL}"))

    Adapted from the terminfo recipe by Edward Loper (PSF license):

      https://code.activestate.com/recipes/475116-using-terminfo-for-portable-color-output-cursor-co/
    """

    BOL: str = ""  #: Move the cursor to the beginning of the line
    UP: str = ""  #: Move the cursor up one line
    CLEAR_EOL: str = ""  #: Clear to the end of the line.
    BOLD: str = ""  #: Turn on bold mode
    NORMAL: str = ""  #: Turn off all modes
    HIDE_CURSOR: str = ""  #: Make the cursor invisible
    SHOW_CURSOR: str = ""  #: Make the cursor visible

    BLACK: str = ""  #: Black foreground color
    BLUE: str = ""  #: Blue foreground color
    GREEN: str = ""  #: Green foreground color
    CYAN: str = ""  #: Cyan foreground color
    RED: str = ""  #: Red foreground color
    MAGENTA: str = ""  #: Magenta foreground color
    YELLOW: str = ""  #: Yellow foreground color
    WHITE: str = ""  #: White foreground color

    columns: Optional[int] = None  #: Terminal width
    lines: Optional[int] = None  #: Terminal height

    _STRING_CAPABILITIES: List[str] = (
        "BOL:cr UP:cuu1 CLEAR_EOL:el BOLD:bold NORMAL:sgr0 "
        "HIDE_CURSOR:civis SHOW_CURSOR:cnorm"
    ).split()

    _ANSI_COLORS: List[str] = "BLACK RED GREEN YELLOW BLUE MAGENTA CYAN WHITE".split()

    def __init__(self, term_stream: Optional[TextIO] = None, color: str = "auto"):
        """
        Initialise terminal capabilities for ``term_stream``.

        Streams that are not a tty get no capabilities unless ``color`` is
        "always", in which case plain ANSI colors are forced when terminfo
        is unavailable.

        :param term_stream: Output stream to probe for capabilities.
        :type term_stream: ``Optional[TextIO]``
        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        """
        if color not in COLOR_MODES:
            raise ValueError(f"Invalid color mode: {color}")

        self.term_stream = term_stream if term_stream is not None else sys.stdout
        self.color = color

        if color != "always":
            isatty = getattr(self.term_stream, "isatty", None)
            if not isatty or not isatty():
                return

        try:
            curses.setupterm()
        # curses.error cannot be named in an except clause reliably.
        except BaseException as err:  # pylint: disable=broad-exception-caught
            if isinstance(err, (KeyboardInterrupt, SystemExit)):  # pragma: no cover
                raise
            if color == "always":
                self._force_ansi()
            return

        self.columns = curses.tigetnum("cols")
        self.lines = curses.tigetnum("lines")

        for capability in self._STRING_CAPABILITIES:
            (attr, cap_name) = capability.split(":")
            setattr(self, attr, self._tigetstr(cap_name))

        if color != "never":
            set_fg = self._tigetstr("setaf")
            if set_fg:
                for i, name in enumerate(self._ANSI_COLORS):
                    seq = curses.tparm(set_fg.encode("utf8"), i).decode("utf8")
                    setattr(self, name, seq or "")

    def _force_ansi(self):
        """
        Set plain ANSI color sequences when terminfo is unavailable.
        """
        for i, name in enumerate(self._ANSI_COLORS):
            setattr(self, name, f"\033[0;3{i}m")
        self.NORMAL = "\033[0m"

    @staticmethod
    def _tigetstr(cap_name: str) -> str:
        # Strip any "$<2>" style padding delays from the capability.
        cap = curses.tigetstr(cap_name)
        cap = cap.decode(encoding="utf8") if cap else ""
        return cap.split("$", maxsplit=1)[0]

    def render(self, template: str) -> str:
        """
        Replace each ``${NAME}`` in ``template`` with the corresponding
        control sequence, or the empty string if it is not defined.
        ``$$`` renders a literal ``$``.

        :param template: Template string containing ${NAME} patterns.
        :type template: ``str``
        :returns: Rendered string with substitutions applied.
        :rtype: ``str``
        """
        return re.sub(r"\$\$|\${\w+}", self._render_sub, template)

    def _render_sub(self, match):
        s = match.group()
        if s == "$$":
            return "$"
        return getattr(self, s[2:-1], "")


def _flush_with_broken_pipe_guard(stream: TextIO) -> None:
    """
    Flush ``stream``, redirecting it to ``/dev/null`` and exiting quietly if
    the reader has gone away.

    :param stream: The stream to flush.
    :type stream: TextIO
    """
    if stream is None or not hasattr(stream, "flush"):
        return
    try:
        stream.flush()
    except BrokenPipeError as err:
        devnull = os.open(os.devnull, os.O_WRONLY)
        try:
            if hasattr(stream, "fileno"):
                os.dup2(devnull, stream.fileno())
        finally:
            os.close(devnull)
        raise SystemExit() from err


class ProgressBase(ABC):
    """
    An abstract progress reporting class.
    """

    #: Length of the fixed characters in the bar format.
    FIXED = -1

    def __init__(self, header: str, register: bool = True):
        self.header: str = header
        self.total: int = 0
        self.term: Optional[TermControl] = None
        self.width: int = -1
        self.first_update: bool = True
        self.registered: bool = False
        self.register: bool = register

    def reset_position(self):
        """Mark progress bar as displaced by external output."""
        self.first_update = True

    def _calculate_width(self, width: Optional[int] = None) -> int:
        """
        Return ``width`` or, if unset, a width derived from the terminal
        columns and ``DEFAULT_WIDTH_FRAC``.

        :param width: An optional fixed width in characters.
        :type width: ``Optional[int]``
        :returns: The progress bar width in characters.
        :rtype: ``int``
        """
        if width is not None:
            return width
        columns = (self.term.columns if self.term else None) or DEFAULT_COLUMNS
        width = round((columns - self.FIXED - len(self.header)) * DEFAULT_WIDTH_FRAC)
        return max(PROGRESS_MIN_WIDTH, width)

    def start(self, total: int):
        """
        Begin a progress run with the specified ``total``.

        :param total: The total number of expected progress items.
        :type total: ``int``
        """
        if total <= 0:
            raise ValueError("total must be positive.")

        self.total = total

        if self.register:
            register_progress(self)

        self._do_start()

    def _check_in_progress(self, done: int, step: str):
        theclass = self.__class__.__name__
        if self.total == 0:
            raise ValueError(f"{theclass}.{step}() called before start()")
        if done < 0:
            raise ValueError(f"{theclass}.{step}() done cannot be negative.")
        if done > self.total:
            raise ValueError(f"{theclass}.{step}() done cannot be > total.")

    def progress(self, done: int, message: Optional[str] = None):
        """
        Advance the progress indicator to the specified ``done`` count.

        :param done: The number of completed progress items.
        :type done: ``int``
        :param message: An optional progress message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(done, "progress")
        self._do_progress(done, message)

    def end(self, message: Optional[str] = None):
        """
        End the progress run and finalize the display.

        :param message: An optional completion message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(self.total, "end")
        self._do_progress(self.total, "")
        self._finish(message)

    def cancel(self, message: Optional[str] = None):
        """
        End the progress run early, leaving the last update visible.

        :param message: An optional error message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(self.total, "cancel")
        self._finish(message)

    def _finish(self, message: Optional[str]):
        self._do_end(message)
        self.total = 0
        if self.registered:
            unregister_progress(self)

    @abstractmethod
    def _do_start(self):
        """Hook invoked when progress begins."""

    @abstractmethod
    def _do_progress(self, done: int, message: Optional[str] = None):
        """Hook for subclasses to update the progress display."""

    @abstractmethod
    def _do_end(self, message: Optional[str] = None):
        """Hook for subclasses to finalize the display."""


class Progress(ProgressBase):
    """
    A two-line colored progress bar for terminals that support cursor
    movement:

        Header: 20% [███████████░░░░░░░░░░░░░░░░░░░░░░░░░░░░░░░░░░]
        progress message
    """

    BAR = (
        "${BOLD}${CYAN}%s${NORMAL}: %3d%% "
        "${GREEN}[${BOLD}%s%s${NORMAL}${GREEN}]${NORMAL}\n"
    )  #: Progress bar format string

    FIXED = 9  #: Length of fixed characters in BAR.

    def __init__(
        self,
        header: str,
        register: bool = True,
        width: Optional[int] = None,
        tc: Optional[TermControl] = None,
    ):
        super().__init__(header, register=register)
        self.term = tc or TermControl()
        self.stream: TextIO = self.term.term_stream

        if not (self.term.CLEAR_EOL and self.term.UP and self.term.BOL):
            raise ValueError("Terminal does not support required control characters.")

        self.width = self._calculate_width(width)
        self.budget: int = max(MIN_BUDGET, (self.term.columns or DEFAULT_COLUMNS) - 10)
        self._interval = timedelta(seconds=1.0 / DEFAULT_FPS)
        self._last: Optional[datetime] = None
        self.pbar: str = ""

        encoding = getattr(self.stream, "encoding", None) or "ascii"
        try:
            "█░".encode(encoding)
            self.did, self.todo = "█", "░"
        except (UnicodeEncodeError, LookupError):
            self.did, self.todo = "=", "-"

    def _do_start(self):
        self.pbar = self.term.render(self.BAR)
        self.first_update = True
        self._last = datetime.now() - self._interval

    def _do_progress(self, done: int, message: Optional[str] = None):
        message = message or ""
        now = datetime.now()
        if done < self.total and now - self._last < self._interval:
            return
        self._last = now

        if self.first_update:
            prefix = self.term.HIDE_CURSOR + self.term.BOL
            self.first_update = False
        else:
            prefix = 2 * (self.term.BOL + self.term.UP + self.term.CLEAR_EOL)

        if len(message) > self.budget:
            message = message[0 : self.budget - 3] + "..."

        percent = float(done) / float(self.total)
        n = int((self.width - 10) * percent)
        bar = self.pbar % (
            self.header,
            percent * 100,
            self.did * n,
            self.todo * (self.width - 10 - n),
        )
        print(prefix + bar + self.term.CLEAR_EOL + message, file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)

    def _do_end(self, message: Optional[str] = None):
        print(
            2 * (self.term.BOL + self.term.UP + self.term.CLEAR_EOL)
            + self.term.SHOW_CURSOR
            + self.term.NORMAL,
            file=self.stream,
            end="",
        )
        if message:
            print(message, file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)


class SimpleProgress(ProgressBase):
    """
    A line-per-update progress report for streams without terminal
    capabilities.
    """

    BAR = "%s: %3d%% [%s%s] (%s)"  #: Progress bar format string
    FIXED = 12  #: Length of fixed characters in BAR.

    def __init__(
        self,
        header: str,
        register: bool = True,
        term_stream: Optional[TextIO] = None,
        width: Optional[int] = None,
    ):
        super().__init__(header, register=register)
        self.stream: TextIO = term_stream or sys.stdout
        self.width = self._calculate_width(width)

    def _do_start(self):
        return

    def _do_progress(self, done: int, message: Optional[str] = None):
        percent = float(done) / float(self.total)
        n = int(self.width * percent)
        print(
            self.BAR
            % (self.header, percent * 100, "=" * n, "-" * (self.width - n), message or ""),
            file=self.stream,
        )
        _flush_with_broken_pipe_guard(self.stream)

    def _do_end(self, message: Optional[str] = None):
        if message:
            print(message, file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)


class NullProgress(ProgressBase):
    """
    A progress class that produces no output.
    """

    def _do_start(self):
        return

    def _do_progress(self, done: int, message: Optional[str] = None):
        return

    def _do_end(self, message: Optional[str] = None):
        return


class ProgressFactory:
    """
    A factory for constructing progress objects.
    """

    @staticmethod
    def get_progress(
        header: str,
        quiet: bool = False,
        term_stream: Optional[TextIO] = None,
        term_control: Optional[TermControl] = None,
        width: Optional[int] = None,
        register: bool = True,
    ) -> ProgressBase:
        """
        Return an appropriate ``ProgressBase`` implementation: a
        ``NullProgress`` when ``quiet``, a ``SimpleProgress`` when the
        stream is not a tty, and a ``Progress`` bar otherwise.

        :param header: The progress report header.
        :type header: ``str``
        :param quiet: Suppress all output.
        :type quiet: ``bool``
        :param term_stream: An optional ``TextIO`` output object.
                            Defaults to ``sys.stdout`` if unspecified.
        :type term_stream: ``Optional[TextIO]``
        :param term_control: An optional ``TermControl`` object to use
                             for the progress report.
        :type term_control: ``Optional[TermControl]``
        :param width: An optional width value in characters.
        :type width: ``Optional[int]``
        :param register: Register the new object with the log system for
                         notification callbacks.
        :type register: ``bool``
        :returns: An appropriate progress implementation.
        :rtype: ``ProgressBase``
        """
        if term_control:
            term_stream = term_control.term_stream

        term_stream = term_stream or sys.stdout
        if quiet:
            return NullProgress(header, register=register)
        isatty = getattr(term_stream, "isatty", None)
        if not isatty or not isatty():
            return SimpleProgress(
                header, register=register, term_stream=term_stream, width=width
            )
        try:
            return Progress(
                header,
                register=register,
                width=width,
                tc=term_control or TermControl(term_stream=term_stream),
            )
        except ValueError:
            return SimpleProgress(
                header, register=register, term_stream=term_stream, width=width
            )


__all__ = [
    "COLOR_MODES",
    "DEFAULT_FPS",
    "NullProgress",
    "Progress",
    "ProgressBase",
    "ProgressFactory",
    "SimpleProgress",
    "TermControl",
]
