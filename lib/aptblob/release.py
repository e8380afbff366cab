""" Release files and the index signatures they list

A distribution's Release file lists every index below it (Packages, Sources
and their compressed variants) once per hash algorithm, in the multiline
``MD5Sum``, ``SHA1`` and ``SHA256`` fields::

    SHA256:
     1d5bd9e7b5b8c1b4a0a2f6d0b3a1e3b5c7d9e1f3a5b7c9d1e3f5a7b9c1d3e5f7 1024 main/binary-amd64/Packages
     ...

Each line is an :class:`IndexSignature`.  :func:`update_signature` merges
the signatures of freshly written indexes into such a field, leaving the
entries of all other indexes alone.
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
import logging
import re

from typing import Dict, Iterable, List, Optional, Set

from aptblob.control import RELEASE_FIELDS, ControlInput, Paragraph, parse_single
from aptblob.digest import HASH_ALGORITHMS
from aptblob.errors import AptblobError, StructuralError


logger = logging.getLogger(__name__)


# Release fields holding index signatures and the hash algorithm of each, in
# the order they appear in Release files.  Note the uppercase 'S' in 'MD5Sum'.
RELEASE_CHECKSUM_FIELDS = collections.OrderedDict([
    ('MD5Sum', 'md5'),
    ('SHA1', 'sha1'),
    ('SHA256', 'sha256'),
])

_RE_SIZE = re.compile(r'^[0-9]+$')


def checksum_size(field_name):
    # type: (str) -> Optional[int]
    """Return the digest size in bytes for a Release checksum field"""
    algorithm = RELEASE_CHECKSUM_FIELDS.get(field_name)
    if algorithm is None:
        return None
    return HASH_ALGORITHMS[algorithm]().digest_size


class IndexSignature(collections.namedtuple('IndexSignature',
                                            ['filename', 'size', 'checksum'])):
    """Checksum and size of one index file, relative to the distribution"""

    __slots__ = ()

    def __str__(self):
        # type: () -> str
        return '%s %d %s' % (self.checksum.hex(), self.size, self.filename)


def _parse_index_signature(line, size):
    # type: (str, int) -> IndexSignature
    fields = line.split()
    if len(fields) != 3:
        raise ValueError("line has %d fields" % len(fields))
    checksum_text, size_text, filename = fields
    if len(checksum_text) != 2 * size:
        raise ValueError("checksum: size %d (expected %d)" % (len(checksum_text), 2 * size))
    try:
        checksum = bytes.fromhex(checksum_text)
    except ValueError:
        raise ValueError("checksum: %r is not hexadecimal" % checksum_text)
    if not _RE_SIZE.match(size_text):
        raise ValueError("size: %r is not a non-negative integer" % size_text)
    return IndexSignature(filename=filename, size=int(size_text), checksum=checksum)


def parse_index_signatures(value, size):
    # type: (str, int) -> List[IndexSignature]
    """Parse the value of a checksum field

    :param value: the field value, one signature per line.  Blank lines are
      skipped.
    :param size: the expected digest size in bytes.
    """
    signatures = []  # type: List[IndexSignature]
    lines = (line for line in value.split('\n') if line.strip())
    for i, line in enumerate(lines, start=1):
        try:
            signatures.append(_parse_index_signature(line, size))
        except ValueError as err:
            raise StructuralError("signature #%d: parse signature: %s" % (i, err)) from err
    return signatures


def format_index_signatures(signatures):
    # type: (Iterable[IndexSignature]) -> str
    """Format signatures as a field value starting on the line after the name"""
    return ''.join('\n ' + str(signature) for signature in signatures)


def merge_signatures(existing, new):
    # type: (Iterable[IndexSignature], Iterable[IndexSignature]) -> List[IndexSignature]
    """Merge a batch of new signatures into an existing list

    Existing entries for a file in the batch get the new checksum and size
    without moving.  Files not listed yet are appended in batch order.  All
    other entries stay where they are.
    """
    updates = collections.OrderedDict()  # type: Dict[str, IndexSignature]
    for signature in new:
        updates[signature.filename] = signature

    merged = []  # type: List[IndexSignature]
    consumed = set()  # type: Set[str]
    for signature in existing:
        update = updates.get(signature.filename)
        if update is not None:
            signature = signature._replace(checksum=update.checksum, size=update.size)
            consumed.add(signature.filename)
        merged.append(signature)
    for filename, signature in updates.items():
        if filename not in consumed:
            merged.append(signature)
    return merged


def update_signature(paragraph, field_name, new):
    # type: (Paragraph, str, Iterable[IndexSignature]) -> Paragraph
    """Return a copy of a Release paragraph with new signatures merged in

    See :func:`merge_signatures`.  The checksums in new must all have the
    digest size of the field's hash algorithm.
    """
    new = list(new)
    if not new:
        return paragraph.copy()
    size = checksum_size(field_name)
    if size is None:
        size = len(new[0].checksum)
    try:
        for signature in new:
            if len(signature.checksum) != size:
                raise StructuralError("%s: checksum is %d bytes (expected %d)" % (
                    signature.filename, len(signature.checksum), size))
        existing = parse_index_signatures(paragraph.get(field_name), size)
    except AptblobError as err:
        raise err.add_context(field_name)

    merged = merge_signatures(existing, new)
    logger.debug("%s: %d signatures, %d new", field_name, len(merged),
                 len(merged) - len(existing))
    result = paragraph.copy()
    result.set(field_name, format_index_signatures(merged))
    return result


def parse_release_index(data):
    # type: (ControlInput) -> Paragraph
    """Parse a Release file, which has a single paragraph"""
    try:
        return parse_single(data, RELEASE_FIELDS)
    except AptblobError as err:
        raise err.add_context("parse Release")
