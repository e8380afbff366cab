""" Blob storage for APT repositories

A repository is a flat namespace of blobs addressed by ``/``-separated keys
such as ``dists/stable/Release``.  Buckets report the outcome of a lookup as
one of three values rather than through exceptions, so that a missing index
(which simply means "empty") can be told apart from a failing backend:

* :class:`Found` wraps the bytes (or attributes) that were read,
* :data:`NOT_FOUND` means the key does not exist,
* :class:`ReadFailed` wraps the error raised by the backend.

:func:`read_blob` and :func:`stat_blob` turn these into the common
"value or None, raise on failure" shape.

Two buckets are provided: :class:`MemoryBucket` (``mem://``) and
:class:`FileBucket`, which keeps blobs as files below a directory
(``file:///srv/apt`` or a plain path).
"""

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
import logging
import os
import tempfile
import urllib.parse
import urllib.request

from typing import Dict, List, Optional, Tuple, Union

from aptblob.digest import hash_file
from aptblob.errors import StorageError


logger = logging.getLogger(__name__)


class Found(collections.namedtuple('Found', ['value'])):
    """Result of a successful lookup"""

    __slots__ = ()


class _NotFound(object):

    __slots__ = ()

    def __repr__(self):
        # type: () -> str
        return 'NOT_FOUND'


#: Result of a lookup for a key that does not exist.
NOT_FOUND = _NotFound()


class ReadFailed(collections.namedtuple('ReadFailed', ['error'])):
    """Result of a lookup that failed for any other reason"""

    __slots__ = ()


class BlobAttributes(collections.namedtuple(
        'BlobAttributes', ['size', 'md5', 'content_type', 'cache_control'])):
    """Metadata of a stored blob; md5 is the raw digest of its content"""

    __slots__ = ()


ReadResult = Union[Found, _NotFound, ReadFailed]


class Bucket(object):
    """Interface of a blob store"""

    def read(self, key):
        # type: (str) -> ReadResult
        """Look up the content of a blob"""
        raise NotImplementedError  # pragma: no cover

    def stat(self, key):
        # type: (str) -> ReadResult
        """Look up the :class:`BlobAttributes` of a blob"""
        raise NotImplementedError  # pragma: no cover

    def write(self, key, data, content_type=None, cache_control=None):
        # type: (str, bytes, Optional[str], Optional[str]) -> None
        """Create or replace a blob, raising StorageError on failure"""
        raise NotImplementedError  # pragma: no cover


def _unwrap(op, key, result):
    # type: (str, str, ReadResult) -> object
    if isinstance(result, Found):
        return result.value
    if result is NOT_FOUND:
        return None
    if isinstance(result, ReadFailed):
        raise StorageError(op, key, result.error)
    raise TypeError("%s %s: unexpected bucket result %r" % (op, key, result))


def read_blob(bucket, key):
    # type: (Bucket, str) -> Optional[bytes]
    """Return the content of a blob, or None if it does not exist"""
    return _unwrap('read', key, bucket.read(key))  # type: ignore


def stat_blob(bucket, key):
    # type: (Bucket, str) -> Optional[BlobAttributes]
    """Return the attributes of a blob, or None if it does not exist"""
    return _unwrap('stat', key, bucket.stat(key))  # type: ignore


class MemoryBucket(Bucket):
    """A bucket that lives in memory for the lifetime of the object"""

    def __init__(self):
        # type: () -> None
        self._blobs = {}  # type: Dict[str, Tuple[bytes, BlobAttributes]]

    def read(self, key):
        # type: (str) -> ReadResult
        if key not in self._blobs:
            return NOT_FOUND
        return Found(self._blobs[key][0])

    def stat(self, key):
        # type: (str) -> ReadResult
        if key not in self._blobs:
            return NOT_FOUND
        return Found(self._blobs[key][1])

    def write(self, key, data, content_type=None, cache_control=None):
        # type: (str, bytes, Optional[str], Optional[str]) -> None
        data = bytes(data)
        attrs = BlobAttributes(size=len(data), md5=hashlib.md5(data).digest(),
                               content_type=content_type, cache_control=cache_control)
        self._blobs[key] = (data, attrs)
        logger.debug("wrote %s (%d bytes)", key, len(data))

    def keys(self):
        # type: () -> List[str]
        return sorted(self._blobs)


class FileBucket(Bucket):
    """A bucket storing each blob as a file below a root directory

    Content type and cache control are not persisted.
    """

    def __init__(self, root):
        # type: (str) -> None
        self.root = root

    def _path(self, key):
        # type: (str) -> str
        parts = key.split('/')
        if key.startswith('/') or any(part in ('', '.', '..') for part in parts):
            raise ValueError("invalid blob key %r" % key)
        return os.path.join(self.root, *parts)

    def read(self, key):
        # type: (str) -> ReadResult
        try:
            with open(self._path(key), 'rb') as f:
                return Found(f.read())
        except FileNotFoundError:
            return NOT_FOUND
        except (OSError, ValueError) as err:
            return ReadFailed(err)

    def stat(self, key):
        # type: (str) -> ReadResult
        try:
            with open(self._path(key), 'rb') as f:
                hashes = hash_file(f)
        except FileNotFoundError:
            return NOT_FOUND
        except (OSError, ValueError) as err:
            return ReadFailed(err)
        return Found(BlobAttributes(size=hashes.size, md5=hashes.md5,
                                    content_type=None, cache_control=None))

    def write(self, key, data, content_type=None, cache_control=None):
        # type: (str, bytes, Optional[str], Optional[str]) -> None
        try:
            path = self._path(key)
            directory = os.path.dirname(path)
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.aptblob-')
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                os.replace(tmp_path, path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except (OSError, ValueError) as err:
            raise StorageError('write', key, err) from err
        logger.debug("wrote %s (%d bytes)", key, len(data))


def open_bucket(url):
    # type: (str) -> Bucket
    """Open the bucket a URL points at

    ``mem://`` yields a new :class:`MemoryBucket`; ``file://`` URLs and plain
    paths yield a :class:`FileBucket`.
    """
    parsed = urllib.parse.urlsplit(url)
    if parsed.scheme == 'mem':
        return MemoryBucket()
    if parsed.scheme == 'file':
        return FileBucket(urllib.request.url2pathname(parsed.path))
    if parsed.scheme == '' or os.path.isabs(url):
        return FileBucket(url)
    raise StorageError('open bucket', url,
                       ValueError("unsupported scheme %r" % parsed.scheme))
