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

""" Exceptions raised by aptblob

All errors raised on purpose by the library derive from :class:`AptblobError`
so that front ends can report them without a traceback.  While an error
propagates, callers may prefix it with what they were working on (a blob key,
a field name) using :meth:`AptblobError.add_context`::

    try:
        release = parse_release_index(data)
    except AptblobError as err:
        raise err.add_context(key)
"""

from typing import List, Optional


class AptblobError(Exception):
    """Base class for all aptblob errors"""

    is_user_error = True

    def __init__(self, *args):
        super(AptblobError, self).__init__(*args)
        self.context = []  # type: List[str]

    def add_context(self, prefix):
        # type: (str) -> AptblobError
        """Prefix the message with prefix and return the error itself"""
        self.context.insert(0, prefix)
        return self

    def describe(self):
        # type: () -> str
        return super(AptblobError, self).__str__()

    def __str__(self):
        # type: () -> str
        return ': '.join(self.context + [self.describe()])


class ControlSyntaxError(AptblobError, ValueError):
    """Indicates that a control file is not syntactically valid"""

    def __init__(self, lineno, reason):
        # type: (int, str) -> None
        super(ControlSyntaxError, self).__init__(lineno, reason)
        self.lineno = lineno
        self.reason = reason

    def describe(self):
        # type: () -> str
        return "parse debian control file: line %d: %s" % (self.lineno, self.reason)


class StructuralError(AptblobError, ValueError):
    """Indicates that a document parsed fine but does not have the expected shape

    Examples are a Release file with more than one paragraph, a Packages
    entry without a Version or a checksum of the wrong length.
    """


class IntegrityError(AptblobError):
    """Indicates an attempt to replace an immutable blob with different content"""


class StorageError(AptblobError):
    """Indicates that the blob storage failed for a reason other than a missing key"""

    def __init__(self, op, key, error=None):
        # type: (str, str, Optional[BaseException]) -> None
        super(StorageError, self).__init__(op, key, error)
        self.op = op
        self.key = key
        self.error = error

    def describe(self):
        # type: () -> str
        if self.error is None:
            return "%s %s" % (self.op, self.key)
        return "%s %s: %s" % (self.op, self.key, self.error)


class SigningError(AptblobError):
    """Indicates that the external signer failed

    ``mode`` is either ``"clear-sign"`` or ``"detach-sign"``.
    """

    def __init__(self, mode, message):
        # type: (str, str) -> None
        super(SigningError, self).__init__(mode, message)
        self.mode = mode
        self.message = message

    def describe(self):
        # type: () -> str
        return "%s: %s" % (self.mode, self.message)
