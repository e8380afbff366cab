""" Building small binary and source packages for the test suite """

import hashlib
import io
import os.path
import tarfile

from typing import Any, Dict, List, Optional, Tuple


HELLO_CONTROL = """\
Package: hello
Version: 2.10-2
Architecture: amd64
Maintainer: Santiago Vila <sanvila@debian.org>
Installed-Size: 280
Depends: libc6 (>= 2.14)
Section: devel
Priority: optional
Description: example package based on GNU hello
 The GNU hello program produces a familiar, friendly greeting.
 .
 Seriously, though: this is an example of how to do a Debian package.
"""

HELLO_DSC = """\
Format: 3.0 (quilt)
Source: hello
Binary: hello
Architecture: any
Version: 2.10-2
Maintainer: Santiago Vila <sanvila@debian.org>
Standards-Version: 4.1.4
Files:
"""

CLEARSIGN_HEADER = """\
-----BEGIN PGP SIGNED MESSAGE-----
Hash: SHA256

"""

CLEARSIGN_FOOTER = """\
-----BEGIN PGP SIGNATURE-----

iQIzBAEBCAAdFiEEYmFzZTY0IGlzIG5vdCBjaGVja2VkIGhlcmU=
=abcd
-----END PGP SIGNATURE-----
"""


def _ar_member(name, data):
    # type: (str, bytes) -> bytes
    header = '%-16s%-12d%-6d%-6d%-8o%-10d`\n' % (name, 0, 0, 0, 0o100644, len(data))
    member = header.encode('ascii') + data
    if len(data) % 2:
        member += b'\n'
    return member


def _tar_gz(members):
    # type: (Dict[str, bytes]) -> bytes
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode='w:gz') as tar:
        for name, data in sorted(members.items()):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            info.mtime = 0
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def deb_bytes(control=HELLO_CONTROL, data_files=None, with_control=True):
    # type: (str, Optional[Dict[str, bytes]], bool) -> bytes
    """Return a binary package in ar format with the given control file"""
    control_members = {}  # type: Dict[str, bytes]
    if with_control:
        control_members['./control'] = control.encode('utf-8')
    else:
        control_members['./md5sums'] = b''
    if data_files is None:
        data_files = {'./usr/share/doc/hello/README': b'hello\n'}
    return (b'!<arch>\n'
            + _ar_member('debian-binary', b'2.0\n')
            + _ar_member('control.tar.gz', _tar_gz(control_members))
            + _ar_member('data.tar.gz', _tar_gz(data_files)))


def write_deb(directory, filename, control=HELLO_CONTROL, **kwargs):
    # type: (str, str, str, **Any) -> str
    path = os.path.join(directory, filename)
    with open(path, 'wb') as f:
        f.write(deb_bytes(control, **kwargs))
    return path


def write_source_package(directory, files, dsc=HELLO_DSC, name='hello_2.10-2.dsc',
                         clearsign=False):
    # type: (str, Dict[str, bytes], str, str, bool) -> str
    """Write a .dsc listing files (which are written as well) to directory"""
    lines = []  # type: List[str]
    for filename, data in sorted(files.items()):
        with open(os.path.join(directory, filename), 'wb') as f:
            f.write(data)
        lines.append(' %s %d %s\n' % (hashlib.md5(data).hexdigest(), len(data), filename))
    text = dsc + ''.join(lines)
    if clearsign:
        text = CLEARSIGN_HEADER + text.replace('\n-', '\n- -') + CLEARSIGN_FOOTER
    path = os.path.join(directory, name)
    with open(path, 'w') as f:
        f.write(text)
    return path


class FakeSigner(object):
    """Signer producing recognizable output without running gpg"""

    def __init__(self):
        # type: () -> None
        self.signed = []  # type: List[bytes]

    def sign(self, data):
        # type: (bytes) -> Tuple[bytes, bytes]
        self.signed.append(data)
        return (b'CLEARSIGNED\n' + data,
                b'DETACHED ' + hashlib.sha256(data).hexdigest().encode('ascii') + b'\n')
