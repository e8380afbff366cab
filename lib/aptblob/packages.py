""" Entries of Packages and Sources indexes """

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

from typing import Dict, Iterable, List, Tuple

from aptblob.control import Paragraph, promote_package_field
from aptblob.errors import StructuralError


def package_identity(paragraph):
    # type: (Paragraph) -> Tuple[str, str]
    """Return the (Package, Version) pair identifying an index entry"""
    name = paragraph.get('Package')
    if not name:
        raise StructuralError("package entry has no Package field")
    version = paragraph.get('Version')
    if not version:
        raise StructuralError("package %s has no Version field" % name)
    return name, version


def dedupe_packages(paragraphs):
    # type: (Iterable[Paragraph]) -> List[Paragraph]
    """Drop all but one entry per (Package, Version)

    An identity keeps the position of its first entry and the content of its
    last one, so that re-uploading a package replaces its entry in place.
    """
    positions = {}  # type: Dict[Tuple[str, str], int]
    result = []  # type: List[Paragraph]
    for paragraph in paragraphs:
        identity = package_identity(paragraph)
        if identity in positions:
            result[positions[identity]] = paragraph
        else:
            positions[identity] = len(result)
            result.append(paragraph)
    return result


def transform_source_control(paragraph, directory):
    # type: (Paragraph, str) -> Paragraph
    """Turn a source package control paragraph into a Sources entry

    Source becomes Package (moved to the front) and Directory points at the
    pool directory holding the source package files.
    """
    if 'Source' in paragraph and 'Package' in paragraph:
        raise StructuralError("source control has both Source and Package fields")
    entry = Paragraph(('Package' if field.name == 'Source' else field.name, field.value)
                      for field in paragraph)
    entry = promote_package_field(entry)
    entry.set('Directory', directory)
    return entry
