# Tests for blob digests
# Copyright (C) 2024 The aptblob developers
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301 USA

import hashlib
import io

import pytest

from aptblob.digest import HASH_ALGORITHMS, hash_bytes, hash_file


class TestDigest:

    def test_hash_bytes(self):
        # type: () -> None
        hashes = hash_bytes(b'')
        assert hashes.size == 0
        assert hashes.md5.hex() == 'd41d8cd98f00b204e9800998ecf8427e'
        assert hashes.sha1.hex() == 'da39a3ee5e6b4b0d3255bfef95601890afd80709'
        assert hashes.sha256.hex() == (
            'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855')

    @pytest.mark.parametrize('algorithm', sorted(HASH_ALGORITHMS))
    def test_digest_by_name(self, algorithm):
        # type: (str) -> None
        data = b'Package: hello\n'
        assert hash_bytes(data).digest(algorithm) == hashlib.new(algorithm, data).digest()

    def test_hash_file(self):
        # type: () -> None
        data = b'hello world\n' * 10000
        with io.BytesIO(data) as f:
            assert hash_file(f) == hash_bytes(data)

    def test_hash_file_from_position(self):
        # type: () -> None
        with io.BytesIO(b'skipped' + b'hashed') as f:
            f.seek(len(b'skipped'))
            hashes = hash_file(f)
        assert hashes == hash_bytes(b'hashed')
        assert hashes.size == 6
