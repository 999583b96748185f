# Copyright Red Hat
#
# fschron/snapshot/patterns.py - File Chronicle glob pattern matching
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Include and exclude pattern matching.

Patterns use a small glob dialect over forward-slash separated relative
paths:

  ``**``  matches any sequence of characters, including ``/``
  ``*``   matches any sequence of characters except ``/``
  ``?``   matches exactly one character

All other characters match literally and case-insensitively, and a pattern
must match the whole path. A leading ``**/`` also matches zero directories;
elsewhere the ``/`` after ``**`` is literal, so ``src/**/x.py`` requires at
least one directory below ``src``. A pattern without any ``/`` is tried against the file name as well, so
``*.txt`` selects text files at any depth.
"""
from functools import lru_cache
from typing import Pattern, TYPE_CHECKING
import re

if TYPE_CHECKING:
    from .options import FilterOptions

#: A leading "**/" also matches zero directories
_ANY_DIR_PREFIX = re.escape("**/")


def normalize_path(path: str) -> str:
    """
    Normalise path separators to forward slashes.

    :param path: The path to normalise.
    :type path: ``str``
    :returns: ``path`` with every backslash replaced by ``/``.
    :rtype: ``str``
    """
    return path.replace("\\", "/")


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Pattern:
    """
    Translate a glob ``pattern`` into a compiled, anchored, case-insensitive
    regular expression.

    :param pattern: The glob pattern.
    :type pattern: ``str``
    :returns: The compiled expression.
    :rtype: ``re.Pattern``
    """
    escaped = re.escape(normalize_path(pattern))
    prefix = ""
    if escaped.startswith(_ANY_DIR_PREFIX):
        prefix = "(?:.*/)?"
        escaped = escaped[len(_ANY_DIR_PREFIX) :]
    regex = prefix + (
        escaped.replace(r"\*\*", ".*").replace(r"\*", "[^/]*").replace(r"\?", ".")
    )
    return re.compile(f"^{regex}$", re.IGNORECASE | re.DOTALL)


def matches(path: str, pattern: str) -> bool:
    """
    Test whether ``path`` matches the glob ``pattern``.

    :param path: The relative path to test.
    :type path: ``str``
    :param pattern: The glob pattern.
    :type pattern: ``str``
    :returns: ``True`` if the whole of ``path`` matches ``pattern``, or if
              ``pattern`` contains no separator and matches the final path
              component.
    :rtype: ``bool``
    """
    path = normalize_path(path)
    regex = compile_pattern(pattern)
    if regex.match(path):
        return True
    if "/" in normalize_path(pattern) or "/" not in path:
        return False
    return regex.match(path.rsplit("/", 1)[1]) is not None


def is_includable(path: str, options: "FilterOptions") -> bool:
    """
    Test whether ``path`` passes the include and exclude patterns of
    ``options``. Exclude patterns take precedence over include patterns,
    and an empty include list accepts every path.

    :param path: The relative path to test.
    :type path: ``str``
    :param options: The filter options to apply.
    :type options: ``FilterOptions``
    :returns: ``True`` if ``path`` should be included.
    :rtype: ``bool``
    """
    path = normalize_path(path)
    if options.include_patterns and not any(
        matches(path, pat) for pat in options.include_patterns
    ):
        return False
    return not any(matches(path, pat) for pat in options.exclude_patterns)
