# -*- coding: utf-8 -*- vim: fileencoding=utf-8 :

""" Reading and writing Debian control files

Release, Packages and Sources indexes as well as the ``control`` member of a
binary package share the same RFC822-like syntax: a file is a series of
paragraphs separated by blank lines, and each paragraph is a series of
``Name: value`` fields.  The syntax is documented in
`Debian Policy 5.1 <https://www.debian.org/doc/debian-policy/ch-controlfields.html>`_.

How the value of a field is put together depends on its :class:`FieldType`,
which the caller supplies as a mapping from field names to types.  Fields
absent from the mapping are simple (single line) fields.

Example::

    >>> from aptblob.control import parse_paragraphs, dump_paragraphs, CONTROL_FIELDS
    >>> paragraphs = parse_paragraphs(
    ...     "Package: hello\\nDescription: greeter\\n Prints hello.\\n",
    ...     fields=CONTROL_FIELDS)
    >>> paragraphs[0].get('Description')
    'greeter\\n Prints hello.'
    >>> dump_paragraphs(paragraphs)
    'Package: hello\\nDescription: greeter\\n Prints hello.\\n'

Unlike Policy, comments are not accepted anywhere: a line starting with
``#`` is a syntax error.
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
import enum
import re

from typing import (
    Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union,
)

from debian.deb822 import Deb822

from aptblob.errors import ControlSyntaxError, StructuralError


class FieldType(enum.Enum):
    """How the lines of a field are turned into its value"""

    #: The field must fit on a single line.
    SIMPLE = 'simple'
    #: The field may span several lines; newlines are kept in the value.
    MULTILINE = 'multiline'
    #: The field may span several lines; newlines are dropped from the value.
    FOLDED = 'folded'


FieldTypes = Mapping[str, FieldType]
ControlInput = Union[str, bytes, Iterable[Union[str, bytes]]]

# Fields of a distribution's Release file.
# https://wiki.debian.org/DebianRepository/Format#A.22Release.22_files
RELEASE_FIELDS = {
    'MD5Sum': FieldType.MULTILINE,
    'SHA1': FieldType.MULTILINE,
    'SHA256': FieldType.MULTILINE,
}  # type: Dict[str, FieldType]

# Fields of the control file of a binary package (and of Packages entries).
CONTROL_FIELDS = {
    'Conffiles': FieldType.MULTILINE,
    'Description': FieldType.MULTILINE,
}  # type: Dict[str, FieldType]

# Fields of a source package control file (.dsc) and of Sources entries.
SOURCE_CONTROL_FIELDS = {
    'Binary': FieldType.FOLDED,
    'Checksums-Sha1': FieldType.MULTILINE,
    'Checksums-Sha256': FieldType.MULTILINE,
    'Dgit': FieldType.FOLDED,
    'Files': FieldType.MULTILINE,
    'Package-List': FieldType.MULTILINE,
    'Uploaders': FieldType.FOLDED,
}  # type: Dict[str, FieldType]


def field_type(fields, name):
    # type: (Optional[FieldTypes], str) -> FieldType
    """Return the type of the field called name according to fields"""
    if fields is None or name not in fields:
        # Anything the mapping does not mention is a simple field.
        return FieldType.SIMPLE
    return fields[name]


_RE_BLANK_LINE = re.compile(r'^[ \t]*$')

# From Policy 5.1: field names are composed of US-ASCII characters excluding
# control characters, space, and colon (U+0021 through U+0039 and U+003B
# through U+007E).
_RE_FORBIDDEN_NAME_CHAR = re.compile(r'[^\x21-\x39\x3B-\x7E]')

_CONTINUATION_MARKERS = (' ', '\t')
_COMMENT_MARKER = '#'


class Field(collections.namedtuple('Field', ['name', 'value'])):
    """A single ``name: value`` pair of a paragraph"""

    __slots__ = ()

    def __str__(self):
        # type: () -> str
        value = self.value.strip(' \t')
        # "Name:" followed by a newline is how a multiline value with an
        # empty first line is written.
        separator = ':' if value.startswith('\n') else ': '
        return self.name + separator + value


class Paragraph(object):
    """An ordered collection of uniquely named fields

    Lookups are by exact name.  The order fields were added in is the order
    in which they are written out.
    """

    __slots__ = ('_fields',)

    def __init__(self, fields=()):
        # type: (Iterable[Tuple[str, str]]) -> None
        self._fields = []  # type: List[Field]
        for name, value in fields:
            if self._find(name) != -1:
                raise ValueError("Duplicate field %r in paragraph" % name)
            self._fields.append(Field(name, value))

    def _find(self, name):
        # type: (str) -> int
        for i, field in enumerate(self._fields):
            if field.name == name:
                return i
        return -1

    def get(self, name, default=''):
        # type: (str, str) -> str
        """Return the value of a field or default if it is not present"""
        i = self._find(name)
        if i == -1:
            return default
        return self._fields[i].value

    def set(self, name, value):
        # type: (str, str) -> None
        """Replace the value of a field, appending the field if it is new"""
        i = self._find(name)
        if i == -1:
            self._fields.append(Field(name, value))
        else:
            self._fields[i] = Field(name, value)

    def names(self):
        # type: () -> List[str]
        return [field.name for field in self._fields]

    def fields(self):
        # type: () -> List[Field]
        return list(self._fields)

    def copy(self):
        # type: () -> Paragraph
        return Paragraph(self._fields)

    def __contains__(self, name):
        # type: (object) -> bool
        return any(field.name == name for field in self._fields)

    def __iter__(self):
        # type: () -> Iterator[Field]
        return iter(list(self._fields))

    def __len__(self):
        # type: () -> int
        return len(self._fields)

    def __eq__(self, other):
        # type: (object) -> bool
        if not isinstance(other, Paragraph):
            return NotImplemented
        return self._fields == other._fields

    def __ne__(self, other):
        # type: (object) -> bool
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None  # type: ignore

    def __repr__(self):
        # type: () -> str
        return 'Paragraph(%r)' % [tuple(field) for field in self._fields]

    def __str__(self):
        # type: () -> str
        return '\n'.join(str(field) for field in self._fields)

    def dump(self):
        # type: () -> str
        """Serialize the paragraph on its own, with a trailing newline"""
        return dump_paragraphs([self])


def dump_paragraphs(paragraphs):
    # type: (Iterable[Paragraph]) -> str
    """Serialize paragraphs as a control file

    Paragraphs are separated by a single blank line and the output ends with
    a newline.  No paragraphs yield the empty string.
    """
    paragraphs = list(paragraphs)
    if not paragraphs:
        return ''
    return '\n\n'.join(str(paragraph) for paragraph in paragraphs) + '\n'


def _iter_raw_lines(sequence):
    # type: (ControlInput) -> Iterator[Union[str, bytes]]
    if isinstance(sequence, bytes):
        sequence = sequence.split(b'\n')
        if not sequence[-1]:
            sequence.pop()
    elif isinstance(sequence, str):
        sequence = sequence.split('\n')
        if not sequence[-1]:
            sequence.pop()
    for line in sequence:
        if isinstance(line, bytes):
            yield line[:-1] if line.endswith(b'\n') else line
        else:
            yield line[:-1] if line.endswith('\n') else line


class ControlParser(object):
    """Iterator over the paragraphs of a control file

    :param sequence: the control file as str, as UTF-8 encoded bytes, or as
      an iterable over its lines (an open file will do).
    :param fields: mapping of field names to :class:`FieldType`.

    Iterating stops at the end of input.  A syntax error is raised as a
    :class:`aptblob.errors.ControlSyntaxError` when the paragraph containing
    it is reached, after which the parser produces nothing more.
    """

    def __init__(self, sequence, fields=None):
        # type: (ControlInput, Optional[FieldTypes]) -> None
        self.fields = fields
        self.lineno = 0
        self._lines = _iter_raw_lines(sequence)
        self._pending = None  # type: Optional[Tuple[int, str]]
        self._failed = False

    def __iter__(self):
        # type: () -> ControlParser
        return self

    def __next__(self):
        # type: () -> Paragraph
        if self._failed:
            raise StopIteration
        try:
            lines = self._read_paragraph_lines()
            if not lines:
                raise StopIteration
            return self._build_paragraph(lines)
        except ControlSyntaxError:
            self._failed = True
            raise

    def at_end(self):
        # type: () -> bool
        """Check whether any paragraph is left, without parsing it"""
        if self._failed:
            return True
        while True:
            line = self._read_line()
            if line is None:
                return True
            if not _RE_BLANK_LINE.match(line[1]):
                self._pending = line
                return False

    def _read_line(self):
        # type: () -> Optional[Tuple[int, str]]
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line
        raw = next(self._lines, None)
        if raw is None:
            return None
        self.lineno += 1
        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8')
            except UnicodeDecodeError:
                raise ControlSyntaxError(self.lineno, "invalid UTF-8")
        return self.lineno, raw

    def _read_paragraph_lines(self):
        # type: () -> List[Tuple[int, str]]
        lines = []  # type: List[Tuple[int, str]]
        while True:
            line = self._read_line()
            if line is None:
                return lines
            if _RE_BLANK_LINE.match(line[1]):
                if lines:
                    return lines
                # Leading blank lines
                continue
            lines.append(line)

    def _build_paragraph(self, lines):
        # type: (List[Tuple[int, str]]) -> Paragraph
        paragraph = Paragraph()
        i = 0
        while i < len(lines):
            lineno, text = lines[i]
            if text.startswith(_COMMENT_MARKER):
                raise ControlSyntaxError(lineno, "comments not allowed")
            if text.startswith(_CONTINUATION_MARKERS):
                raise ControlSyntaxError(lineno, "continuation line without a field")

            colon = text.find(':')
            if colon == -1:
                raise ControlSyntaxError(lineno, "missing colon")
            name = text[:colon]
            _validate_field_name(lineno, name)
            if name in paragraph:
                raise ControlSyntaxError(lineno, "multiple fields for %r" % name)

            parts = [text[colon + 1:]]
            i += 1
            while i < len(lines) and lines[i][1].startswith(
                    _CONTINUATION_MARKERS + (_COMMENT_MARKER,)):
                continuation_lineno, continuation = lines[i]
                if continuation.startswith(_COMMENT_MARKER):
                    raise ControlSyntaxError(continuation_lineno, "comments not allowed")
                parts.append(continuation)
                i += 1

            kind = field_type(self.fields, name)
            if kind is FieldType.SIMPLE:
                if len(parts) > 1:
                    raise ControlSyntaxError(
                        lineno, "field %r must be a single line" % name)
                value = parts[0]
            elif kind is FieldType.FOLDED:
                value = ''.join(parts)
            else:
                value = '\n'.join(parts)
            value = value.strip(' \t')
            if not value:
                raise ControlSyntaxError(lineno, "empty field %r" % name)
            paragraph.set(name, value)
        return paragraph


def _validate_field_name(lineno, name):
    # type: (int, str) -> None
    if not name:
        raise ControlSyntaxError(lineno, "empty field name")
    if name.startswith('-'):
        raise ControlSyntaxError(lineno, "field name %r begins with hyphen" % name)
    m = _RE_FORBIDDEN_NAME_CHAR.search(name)
    if m:
        raise ControlSyntaxError(
            lineno, "field name %r has forbidden character %r" % (name, m.group(0)))


def parse_paragraphs(sequence, fields=None):
    # type: (ControlInput, Optional[FieldTypes]) -> List[Paragraph]
    """Parse every paragraph of a control file"""
    return list(ControlParser(sequence, fields))


def parse_single(sequence, fields=None):
    # type: (ControlInput, Optional[FieldTypes]) -> Paragraph
    """Parse a control file that must hold exactly one paragraph

    Raises :class:`aptblob.errors.StructuralError` for an empty file or one
    with more than one paragraph.
    """
    parser = ControlParser(sequence, fields)
    paragraph = next(parser, None)
    if paragraph is None:
        raise StructuralError("parse debian control file: unexpected end of input")
    if not parser.at_end():
        lineno = parser.lineno
        # A syntax error in what follows is reported as such.
        next(parser)
        raise StructuralError(
            "parse debian control file: line %d: multiple paragraphs encountered"
            % lineno)
    return paragraph


def promote_package_field(paragraph):
    # type: (Paragraph) -> Paragraph
    """Return a copy of paragraph with the Package field moved to the front

    Packages and Sources entries must start with their Package field.
    """
    fields = paragraph.fields()
    for i, field in enumerate(fields):
        if field.name == 'Package':
            return Paragraph([field] + fields[:i] + fields[i + 1:])
    return paragraph.copy()


def strip_clearsign(data):
    # type: (bytes) -> bytes
    """Return the signed text of an OpenPGP clear-signed document

    Documents that are not clear-signed (such as an unsigned .dsc) are
    returned as they are.  The signature itself is not verified, and blank
    lines inside the signed text are dropped, so a signed document is
    expected to hold a single paragraph.
    """
    if not data.strip():
        return data
    gpg_pre, payload, gpg_post = Deb822.split_gpg_and_payload(data.splitlines())
    if not gpg_pre:
        return data
    if not gpg_post:
        raise StructuralError("clear-signed message: missing signature")
    return b'\n'.join(payload) + b'\n'
