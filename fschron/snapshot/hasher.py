# Copyright Red Hat
#
# fschron/snapshot/hasher.py - File Chronicle content hashing
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Streaming file content hashes.
"""
from hashlib import sha256, sha512
from typing import Optional
import logging

from fschron import FSCHRON_SUBSYSTEM_SNAPSHOT

from .cancel import CancelToken, check_cancel

_log = logging.getLogger(__name__)


def _log_debug_snapshot(msg, *args, **kwargs):
    """A wrapper for snapshot subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": FSCHRON_SUBSYSTEM_SNAPSHOT}, **kwargs)


_HASH_TYPES = {
    "sha256": sha256,
    "sha512": sha512,
}

#: Default hash algorithm
DEFAULT_HASH = "sha256"

#: Read size for hashing
HASH_CHUNK_SIZE = 81920


def hash_file(
    file_path: str,
    cancel: Optional[CancelToken] = None,
    algorithm: str = DEFAULT_HASH,
) -> str:
    """
    Calculate the content hash of the file at ``file_path``.

    The file is read in ``HASH_CHUNK_SIZE`` chunks and ``cancel`` is
    checked before each read so that hashing a large file does not delay
    cancellation.

    :param file_path: The path to the file to hash.
    :type file_path: ``str``
    :param cancel: An optional cancellation token.
    :type cancel: ``Optional[CancelToken]``
    :param algorithm: The name of the hash algorithm to use.
    :type algorithm: ``str``
    :returns: The lowercase hexadecimal digest of the file content.
    :rtype: ``str``
    :raises OSError: If the file cannot be opened or read.
    :raises FsChronCancelledError: If ``cancel`` is set during hashing.
    """
    if algorithm not in _HASH_TYPES:
        raise ValueError(f"Unknown hash algorithm: {algorithm}")

    hasher = _HASH_TYPES[algorithm]()
    with open(file_path, "rb") as f:
        while True:
            check_cancel(cancel)
            chunk = f.read(HASH_CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    digest = hasher.hexdigest()
    _log_debug_snapshot("Hashed '%s' (%s): %s", file_path, algorithm, digest)
    return digest
