# Copyright Red Hat
#
# tests/snapshot/test_hasher.py - Content hashing tests.
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import tempfile
import hashlib
import os

from fschron import FsChronCancelledError
from fschron.snapshot.cancel import CancelToken
from fschron.snapshot.hasher import HASH_CHUNK_SIZE, hash_file


class TestHashFile(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, "data.bin")

    def tearDown(self):
        self.tmpdir.cleanup()

    def _write(self, data):
        with open(self.path, "wb") as fp:
            fp.write(data)

    def test_hash_small_file(self):
        self._write(b"hello")
        self.assertEqual(
            hash_file(self.path),
            "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824",
        )

    def test_hash_empty_file(self):
        self._write(b"")
        self.assertEqual(hash_file(self.path), hashlib.sha256(b"").hexdigest())

    def test_hash_multi_chunk_file(self):
        data = os.urandom(HASH_CHUNK_SIZE * 3 + 17)
        self._write(data)
        self.assertEqual(hash_file(self.path), hashlib.sha256(data).hexdigest())

    def test_hash_is_lowercase(self):
        self._write(b"case")
        digest = hash_file(self.path)
        self.assertEqual(digest, digest.lower())

    def test_hash_sha512(self):
        self._write(b"hello")
        self.assertEqual(
            hash_file(self.path, algorithm="sha512"),
            hashlib.sha512(b"hello").hexdigest(),
        )

    def test_hash_unknown_algorithm(self):
        self._write(b"hello")
        with self.assertRaises(ValueError):
            hash_file(self.path, algorithm="crc32")

    def test_hash_missing_file(self):
        with self.assertRaises(OSError):
            hash_file(os.path.join(self.tmpdir.name, "missing"))

    def test_hash_cancelled(self):
        self._write(b"x" * HASH_CHUNK_SIZE)
        cancel = CancelToken()
        cancel.cancel()
        with self.assertRaises(FsChronCancelledError):
            hash_file(self.path, cancel)
