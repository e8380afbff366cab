""" Reading metadata out of binary packages """

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

import tarfile

from debian.arfile import ArError
from debian.debfile import DebFile

from aptblob.errors import StructuralError


def extract_control(path):
    # type: (str) -> bytes
    """Return the raw ``control`` file of the .deb at path

    Raises StructuralError if the file is not a binary package or has no
    control file.  Errors opening the file propagate as OSError.
    """
    try:
        deb = DebFile(filename=path)
    except (ArError, tarfile.TarError, EOFError) as err:
        raise StructuralError("extract deb control: %s" % err) from err
    try:
        control = deb.control.get_content('control')
    except (ArError, tarfile.TarError, KeyError, EOFError) as err:
        raise StructuralError("extract deb control: %s" % err) from err
    finally:
        deb.close()
    if control is None:
        raise StructuralError("extract deb control: control is not a regular file")
    return control
