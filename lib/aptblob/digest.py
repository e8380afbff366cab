""" Checksums of blobs as listed in Release files and Packages entries """

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

import collections
import hashlib

from typing import Any, BinaryIO, Callable, Dict


# The hash algorithms APT indexes are signed with, by canonical name.
HASH_ALGORITHMS = {
    'md5': hashlib.md5,
    'sha1': hashlib.sha1,
    'sha256': hashlib.sha256,
}  # type: Dict[str, Callable[..., Any]]

# Buffer size for file I/O, in bytes.
_BUFF_SIZE = 64 * 1024


class IndexHashes(collections.namedtuple('IndexHashes', ['size', 'md5', 'sha1', 'sha256'])):
    """Size and raw digests of a blob"""

    __slots__ = ()

    def digest(self, algorithm):
        # type: (str) -> bytes
        return getattr(self, algorithm)


def _new_messages():
    # type: () -> Dict[str, Any]
    return {name: algo() for name, algo in HASH_ALGORITHMS.items()}


def _finish(size, msgs):
    # type: (int, Dict[str, Any]) -> IndexHashes
    return IndexHashes(size=size, **{name: msg.digest() for name, msg in msgs.items()})


def hash_bytes(data):
    # type: (bytes) -> IndexHashes
    msgs = _new_messages()
    for msg in msgs.values():
        msg.update(data)
    return _finish(len(data), msgs)


def hash_file(fileobj):
    # type: (BinaryIO) -> IndexHashes
    """Hash an open binary file from its current position to the end"""
    msgs = _new_messages()
    size = 0
    for chunk in iter(lambda: fileobj.read(_BUFF_SIZE), b''):
        size += len(chunk)
        for msg in msgs.values():
            msg.update(chunk)
    return _finish(size, msgs)
