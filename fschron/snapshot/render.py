# Copyright Red Hat
#
# fschron/snapshot/render.py - File Chronicle snapshot and diff renderers
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Renderers that present a ``Snapshot`` or ``DiffResult`` in an export
format.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Type, Union
from html import escape
import logging
import csv
import io

from fschron import (
    FsChronArgumentError,
    format_bytes,
    format_signed_bytes,
    format_size_diff,
)

from .engine import DiffResult
from .model import FileEntry, Snapshot

_log = logging.getLogger(__name__)

_log_debug = _log.debug

#: Timestamp format for CSV and HTML output
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_HTML_STYLE = """\
body { font-family: 'Segoe UI', Arial, sans-serif; margin: 20px; background: #f5f5f5; }
h1 { color: #2c3e50; border-bottom: 3px solid #3498db; padding-bottom: 10px; }
h2 { color: #34495e; margin-top: 30px; }
.summary { background: white; padding: 20px; border-radius: 5px; margin: 20px 0; }
.added { color: #27ae60; font-weight: bold; }
.removed { color: #e74c3c; font-weight: bold; }
.changed { color: #f39c12; font-weight: bold; }
table { width: 100%; border-collapse: collapse; background: white; }
th, td { padding: 10px; text-align: left; border-bottom: 1px solid #ddd; }
th { background: #3498db; color: white; }
.meta { color: #7f8c8d; font-size: 0.9em; }"""


def _fmt_time(value: datetime) -> str:
    return value.strftime(_TIME_FORMAT)


class Renderer(ABC):
    """
    Abstract base class for snapshot and diff renderers.
    """

    #: Format tag handled by this renderer
    name: str = ""

    def render(self, obj: Union[Snapshot, DiffResult]) -> bytes:
        """
        Render ``obj`` in this renderer's format.

        :param obj: The snapshot or diff to render.
        :type obj: ``Union[Snapshot, DiffResult]``
        :returns: The encoded output.
        :rtype: ``bytes``
        :raises FsChronArgumentError: If ``obj`` cannot be rendered in this
                                      format.
        """
        if isinstance(obj, Snapshot):
            text = self.render_snapshot(obj)
        elif isinstance(obj, DiffResult):
            text = self.render_diff(obj)
        else:
            raise FsChronArgumentError(
                f"Cannot render object of type {type(obj).__name__}"
            )
        _log_debug(
            "Rendered %s as %s (%d characters)", type(obj).__name__, self.name, len(text)
        )
        return text.encode("utf8")

    @abstractmethod
    def render_snapshot(self, snapshot: Snapshot) -> str:
        """
        Render a ``Snapshot`` as a string.
        """

    @abstractmethod
    def render_diff(self, diff: DiffResult) -> str:
        """
        Render a ``DiffResult`` as a string.
        """


class JsonRenderer(Renderer):
    """
    Indented JSON output.
    """

    name = "json"

    def render_snapshot(self, snapshot: Snapshot) -> str:
        return snapshot.json(pretty=True)

    def render_diff(self, diff: DiffResult) -> str:
        return diff.json(pretty=True)


class CsvRenderer(Renderer):
    """
    Comma separated values with a header row.
    """

    name = "csv"

    @staticmethod
    def _write(rows: List[List[str]]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerows(rows)
        return buf.getvalue()

    def render_snapshot(self, snapshot: Snapshot) -> str:
        rows = [["RelativePath", "Length", "LastWriteUtc", "Sha256"]]
        rows.extend(
            [
                entry.relative_path,
                str(entry.length),
                _fmt_time(entry.last_modified),
                entry.content_hash,
            ]
            for entry in snapshot.files
        )
        return self._write(rows)

    def render_diff(self, diff: DiffResult) -> str:
        rows = [["Status", "FilePath", "OldSize", "NewSize", "LastModified"]]
        rows.extend(
            [
                "Added",
                entry.relative_path,
                "",
                str(entry.length),
                _fmt_time(entry.last_modified),
            ]
            for entry in diff.added
        )
        rows.extend(
            [
                "Removed",
                entry.relative_path,
                str(entry.length),
                "",
                _fmt_time(entry.last_modified),
            ]
            for entry in diff.removed
        )
        rows.extend(
            [
                "Changed",
                pair.path,
                str(pair.old.length),
                str(pair.new.length),
                _fmt_time(pair.new.last_modified),
            ]
            for pair in diff.changed
        )
        rows.extend(
            [
                "Unchanged",
                entry.relative_path,
                str(entry.length),
                str(entry.length),
                _fmt_time(entry.last_modified),
            ]
            for entry in diff.unchanged
        )
        return self._write(rows)


class HtmlRenderer(Renderer):
    """
    Standalone HTML diff report. Snapshots have no HTML representation.
    """

    name = "html"

    def render_snapshot(self, snapshot: Snapshot) -> str:
        raise FsChronArgumentError("HTML output is only available for diffs")

    @staticmethod
    def _entry_table(css_class: str, title: str, entries: List[FileEntry]) -> List[str]:
        out = [
            f"<h2 class='{css_class}'>{title}</h2>",
            "<table><tr><th>File Path</th><th>Size</th><th>Modified</th></tr>",
        ]
        out.extend(
            f"<tr><td>{escape(entry.relative_path)}</td>"
            f"<td>{format_bytes(entry.length)}</td>"
            f"<td>{_fmt_time(entry.last_modified)}</td></tr>"
            for entry in entries
        )
        out.append("</table>")
        return out

    def render_diff(self, diff: DiffResult) -> str:
        out = [
            "<!DOCTYPE html>",
            "<html><head><meta charset='utf-8'><title>File Chronicle Diff Report</title>",
            f"<style>\n{_HTML_STYLE}\n</style></head><body>",
            "<h1>File Chronicle Diff Report</h1>",
            f"<p class='meta'><strong>Generated:</strong> {_fmt_time(datetime.now())}</p>",
            "<p class='meta'><strong>Old Snapshot:</strong> "
            f"{escape(diff.old_snapshot.root_directory)} "
            f"{_fmt_time(diff.old_snapshot.created_at)} UTC</p>",
            "<p class='meta'><strong>New Snapshot:</strong> "
            f"{escape(diff.new_snapshot.root_directory)} "
            f"{_fmt_time(diff.new_snapshot.created_at)} UTC</p>",
            "<div class='summary'>",
            "<h2>Summary</h2>",
            f"<p><span class='added'>Added:</span> {len(diff.added)} files</p>",
            f"<p><span class='removed'>Removed:</span> {len(diff.removed)} files</p>",
            f"<p><span class='changed'>Changed:</span> {len(diff.changed)} files</p>",
            "<p><strong>Total size change:</strong> "
            f"{format_signed_bytes(diff.size_delta)}</p>",
            "</div>",
        ]
        if diff.added:
            out.extend(self._entry_table("added", "Added Files", diff.added))
        if diff.removed:
            out.extend(self._entry_table("removed", "Removed Files", diff.removed))
        if diff.changed:
            out.append("<h2 class='changed'>Changed Files</h2>")
            out.append(
                "<table><tr><th>File Path</th><th>Old Size</th><th>New Size</th>"
                "<th>Size Change</th><th>Modified</th></tr>"
            )
            out.extend(
                f"<tr><td>{escape(pair.path)}</td>"
                f"<td>{format_bytes(pair.old.length)}</td>"
                f"<td>{format_bytes(pair.new.length)}</td>"
                f"<td>{format_size_diff(pair.old.length, pair.new.length)}</td>"
                f"<td>{_fmt_time(pair.new.last_modified)}</td></tr>"
                for pair in diff.changed
            )
            out.append("</table>")
        out.append("</body></html>")
        return "\n".join(out) + "\n"


_RENDERERS: Dict[str, Type[Renderer]] = {
    JsonRenderer.name: JsonRenderer,
    CsvRenderer.name: CsvRenderer,
    HtmlRenderer.name: HtmlRenderer,
}


def get_renderer(fmt: str) -> Renderer:
    """
    Return a renderer for the format tag ``fmt``.

    :param fmt: The format tag: "json", "csv" or "html".
    :type fmt: ``str``
    :returns: A new ``Renderer`` instance.
    :rtype: ``Renderer``
    :raises FsChronArgumentError: If ``fmt`` is not a known format.
    """
    try:
        return _RENDERERS[fmt.lower()]()
    except KeyError as err:
        raise FsChronArgumentError(
            f"Unknown format: {fmt} (expected one of {', '.join(_RENDERERS)})"
        ) from err


__all__ = [
    "CsvRenderer",
    "HtmlRenderer",
    "JsonRenderer",
    "Renderer",
    "get_renderer",
]
