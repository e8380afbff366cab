# Tests for Release index signatures
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
import logging

import pytest

from aptblob.control import Paragraph, dump_paragraphs
from aptblob.digest import hash_bytes
from aptblob.errors import ControlSyntaxError, StructuralError
from aptblob.release import (
    RELEASE_CHECKSUM_FIELDS,
    IndexSignature,
    checksum_size,
    format_index_signatures,
    merge_signatures,
    parse_index_signatures,
    parse_release_index,
    update_signature,
)


def md5sig(filename, data):
    # type: (str, bytes) -> IndexSignature
    return IndexSignature(filename=filename, size=len(data),
                          checksum=hashlib.md5(data).digest())


PACKAGES = md5sig('main/binary-amd64/Packages', b'Package: hello\n')
PACKAGES_GZ = md5sig('main/binary-amd64/Packages.gz', b'compressed')
SOURCES = md5sig('main/source/Sources', b'Package: hello\nDirectory: pool/hello\n')
EMPTY = md5sig('contrib/binary-amd64/Packages', b'')

RELEASE = """\
Origin: stable
Label: stable
Codename: stable
Architectures: amd64
MD5Sum:
 %s
 %s
SHA256:
 %s 0 contrib/binary-amd64/Packages
""" % (PACKAGES, SOURCES, hashlib.sha256(b'').hexdigest())


class TestIndexSignatures:

    def test_str(self):
        # type: () -> None
        assert str(EMPTY) == 'd41d8cd98f00b204e9800998ecf8427e 0 contrib/binary-amd64/Packages'

    def test_checksum_size(self):
        # type: () -> None
        assert checksum_size('MD5Sum') == 16
        assert checksum_size('SHA1') == 20
        assert checksum_size('SHA256') == 32
        assert checksum_size('Files') is None
        assert list(RELEASE_CHECKSUM_FIELDS) == ['MD5Sum', 'SHA1', 'SHA256']

    def test_parse(self):
        # type: () -> None
        value = '\n %s\n\n  %s  \n' % (PACKAGES, SOURCES)
        assert parse_index_signatures(value, 16) == [PACKAGES, SOURCES]

    def test_parse_empty(self):
        # type: () -> None
        assert parse_index_signatures('', 16) == []
        assert parse_index_signatures('\n \n', 16) == []

    def test_format(self):
        # type: () -> None
        assert format_index_signatures([]) == ''
        assert format_index_signatures([PACKAGES, EMPTY]) == '\n %s\n %s' % (PACKAGES, EMPTY)
        assert parse_index_signatures(format_index_signatures([PACKAGES, EMPTY]), 16) == [
            PACKAGES, EMPTY]

    @pytest.mark.parametrize('line,message', [
        ('d41d8cd98f00b204e9800998ecf8427e 0', 'line has 2 fields'),
        ('d41d8cd98f00b204e9800998ecf8427e 0 Packages extra', 'line has 4 fields'),
        ('d41d8cd98f00b204e9800998ecf842 0 Packages', 'checksum: size 30 (expected 32)'),
        ('d41d8cd98f00b204e9800998ecf842zz 0 Packages', 'is not hexadecimal'),
        ('d41d8cd98f00b204e9800998ecf8427e -1 Packages', 'is not a non-negative integer'),
        ('d41d8cd98f00b204e9800998ecf8427e 1e3 Packages', 'is not a non-negative integer'),
    ])
    def test_parse_errors(self, line, message):
        # type: (str, str) -> None
        value = '\n %s\n %s' % (PACKAGES, line)
        with pytest.raises(StructuralError) as excinfo:
            parse_index_signatures(value, 16)
        assert str(excinfo.value).startswith('signature #2: parse signature: ')
        assert message in str(excinfo.value)


class TestMergeSignatures:

    def test_append(self):
        # type: () -> None
        assert merge_signatures([PACKAGES], [SOURCES, EMPTY]) == [PACKAGES, SOURCES, EMPTY]

    def test_update_in_place(self):
        # type: () -> None
        changed = md5sig(PACKAGES.filename, b'Package: hello\n\nPackage: world\n')
        assert merge_signatures([PACKAGES, SOURCES], [changed, PACKAGES_GZ]) == [
            changed, SOURCES, PACKAGES_GZ]

    def test_update_duplicate_entries(self):
        # type: () -> None
        changed = md5sig(PACKAGES.filename, b'new')
        assert merge_signatures([PACKAGES, SOURCES, PACKAGES], [changed]) == [
            changed, SOURCES, changed]

    def test_last_new_signature_wins(self):
        # type: () -> None
        first = md5sig(SOURCES.filename, b'first')
        last = md5sig(SOURCES.filename, b'last')
        assert merge_signatures([PACKAGES], [first, EMPTY, last]) == [PACKAGES, last, EMPTY]

    def test_idempotent(self):
        # type: () -> None
        batch = [md5sig(PACKAGES.filename, b'changed'), PACKAGES_GZ]
        once = merge_signatures([PACKAGES, SOURCES], batch)
        assert merge_signatures(once, batch) == once

    def test_nothing_new(self):
        # type: () -> None
        assert merge_signatures([PACKAGES, SOURCES], []) == [PACKAGES, SOURCES]


class TestUpdateSignature:

    def test_update(self):
        # type: () -> None
        release = parse_release_index(RELEASE)
        changed = md5sig(PACKAGES.filename, b'changed')
        updated = update_signature(release, 'MD5Sum', [changed, PACKAGES_GZ])
        assert parse_index_signatures(updated.get('MD5Sum'), 16) == [
            changed, SOURCES, PACKAGES_GZ]
        assert updated.names() == release.names()
        assert updated.get('SHA256') == release.get('SHA256')
        # The input paragraph is untouched.
        assert parse_index_signatures(release.get('MD5Sum'), 16) == [PACKAGES, SOURCES]

    def test_new_field(self):
        # type: () -> None
        release = Paragraph([('Origin', 'stable')])
        hashes = hash_bytes(b'Package: hello\n')
        sig = IndexSignature('main/binary-amd64/Packages', hashes.size, hashes.sha1)
        updated = update_signature(release, 'SHA1', [sig])
        assert dump_paragraphs([updated]) == 'Origin: stable\nSHA1:\n %s\n' % (sig,)
        assert parse_release_index(dump_paragraphs([updated])) == updated

    def test_empty_batch(self):
        # type: () -> None
        release = Paragraph([('Origin', 'stable'), ('MD5Sum', 'garbage')])
        updated = update_signature(release, 'MD5Sum', [])
        assert updated == release
        assert updated is not release

    def test_wrong_checksum_size(self):
        # type: () -> None
        release = parse_release_index(RELEASE)
        with pytest.raises(StructuralError, match='^SHA256: .*expected 32'):
            update_signature(release, 'SHA256', [PACKAGES])

    def test_malformed_existing(self):
        # type: () -> None
        release = Paragraph([('MD5Sum', '\n %s\n not a signature' % (PACKAGES,))])
        with pytest.raises(StructuralError) as excinfo:
            update_signature(release, 'MD5Sum', [SOURCES])
        assert str(excinfo.value).startswith('MD5Sum: signature #2: parse signature: ')

    def test_logging(self, caplog):
        # type: (pytest.LogCaptureFixture) -> None
        release = parse_release_index(RELEASE)
        with caplog.at_level(logging.DEBUG, logger='aptblob.release'):
            update_signature(release, 'MD5Sum', [PACKAGES_GZ])
        assert caplog.record_tuples == [(
            'aptblob.release', logging.DEBUG, 'MD5Sum: 3 signatures, 1 new',
        )]


class TestReleaseIndex:

    def test_parse(self):
        # type: () -> None
        release = parse_release_index(RELEASE.encode('utf-8'))
        assert release.get('Codename') == 'stable'
        assert release.get('MD5Sum') == '\n %s\n %s' % (PACKAGES, SOURCES)

    def test_multiple_paragraphs(self):
        # type: () -> None
        with pytest.raises(StructuralError) as excinfo:
            parse_release_index(RELEASE + '\nOrigin: other\n')
        assert str(excinfo.value).startswith('parse Release: parse debian control file: ')

    def test_checksum_fields_are_multiline(self):
        # type: () -> None
        with pytest.raises(ControlSyntaxError, match="'Origin' must be a single line"):
            parse_release_index('Origin: stable\n more\n')
