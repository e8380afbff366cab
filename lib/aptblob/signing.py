""" Signing Release files with GnuPG

A signer is any object with a ``sign(data)`` method returning the
clear-signed document (published as ``InRelease``) and the detached, armored
signature (published as ``Release.gpg``).  :class:`GpgSigner` is the one
backed by the ``gpg`` executable.
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

import logging
import subprocess

from typing import List, Tuple

from aptblob.errors import SigningError


logger = logging.getLogger(__name__)

CLEAR_SIGN = 'clear-sign'
DETACH_SIGN = 'detach-sign'


class GpgSigner(object):
    """Signs with one key of the user's GnuPG keyring

    :param key_id: the key to sign with.  A ``!`` is appended so that gpg
      uses exactly this (sub)key.
    :param gpg: name or path of the gpg executable.
    """

    def __init__(self, key_id, gpg='gpg'):
        # type: (str, str) -> None
        self.key_id = key_id
        self.gpg = gpg

    def _command(self, mode):
        # type: (str) -> List[str]
        return [self.gpg, '-a', '-u', self.key_id + '!', '--' + mode]

    def _run(self, mode, data):
        # type: (str, bytes) -> bytes
        args = self._command(mode)
        logger.debug("running %s", ' '.join(args))
        try:
            child = subprocess.run(args, input=data,
                                   stdout=subprocess.PIPE,
                                   stderr=subprocess.PIPE)
        except OSError as err:
            raise SigningError(mode, "cannot run %s: %s" % (self.gpg, err)) from err
        if child.returncode:
            raise SigningError(mode, "%s returned %d: %s" % (
                self.gpg, child.returncode,
                child.stderr.decode('utf-8', 'replace').strip()))
        return child.stdout

    def clear_sign(self, data):
        # type: (bytes) -> bytes
        return self._run(CLEAR_SIGN, data)

    def detach_sign(self, data):
        # type: (bytes) -> bytes
        return self._run(DETACH_SIGN, data)

    def sign(self, data):
        # type: (bytes) -> Tuple[bytes, bytes]
        return self.clear_sign(data), self.detach_sign(data)
