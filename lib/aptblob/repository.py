""" Maintaining an APT repository stored in a bucket

Layout of a repository, relative to the root of the bucket::

    dists/<dist>/Release
    dists/<dist>/InRelease                       (only when signing)
    dists/<dist>/Release.gpg                     (only when signing)
    dists/<dist>/<component>/binary-<arch>/Packages[.gz]
    dists/<dist>/<component>/source/Sources[.gz]
    pool/<package>.deb
    pool/<source>/<file>

Every update rewrites the affected Packages or Sources index, uploads it
uncompressed and gzipped and then merges the signatures of both variants into
the Release file (see :meth:`Repository.update_index`).  Blobs below
``pool/`` are immutable: uploading a file again is only allowed when the
content is identical.

Only one process may update a distribution at a time.  Concurrent updates
read and rewrite the same Release file and lose each other's changes.
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
import gzip
import logging
import mimetypes
import os.path

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from aptblob.control import (
    CONTROL_FIELDS,
    SOURCE_CONTROL_FIELDS,
    FieldTypes,
    Paragraph,
    dump_paragraphs,
    parse_paragraphs,
    parse_single,
    promote_package_field,
    strip_clearsign,
)
from aptblob.debfile import extract_control
from aptblob.digest import IndexHashes, hash_bytes
from aptblob.errors import AptblobError, IntegrityError, StructuralError
from aptblob.packages import dedupe_packages, transform_source_control
from aptblob.release import (
    RELEASE_CHECKSUM_FIELDS,
    IndexSignature,
    checksum_size,
    parse_index_signatures,
    parse_release_index,
    update_signature,
)
from aptblob.storage import Bucket, read_blob, stat_blob


logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPE = 'text/plain; charset=utf-8'
GZIP_CONTENT_TYPE = 'application/gzip'
DEB_CONTENT_TYPE = 'application/vnd.debian.binary-package'
DEFAULT_CONTENT_TYPE = 'application/octet-stream'

# Cache-Control of blobs whose content never changes once published.
IMMUTABLE = 'immutable'
# Cache-Control of everything else.
DEFAULT_CACHE_CONTROL = 'max-age=300'

GZIP_EXTENSION = '.gz'
POOL_DIR = 'pool'


class Distribution(collections.namedtuple('Distribution', ['name'])):
    """A distribution (suite) of the repository, like ``stable``"""

    __slots__ = ()

    @property
    def dir(self):
        # type: () -> str
        return 'dists/' + self.name

    @property
    def release_path(self):
        # type: () -> str
        return self.dir + '/Release'

    @property
    def signed_release_path(self):
        # type: () -> str
        return self.dir + '/InRelease'

    @property
    def release_signature_path(self):
        # type: () -> str
        return self.dir + '/Release.gpg'

    def relative_path(self, key):
        # type: (str) -> str
        """Return key relative to the distribution, as listed in Release"""
        prefix = self.dir + '/'
        if not key.startswith(prefix):
            raise ValueError("%s is not below %s" % (key, self.dir))
        return key[len(prefix):]


class Component(collections.namedtuple('Component', ['dist', 'name'])):
    """An area of a distribution, like ``main``"""

    __slots__ = ()

    @property
    def dir(self):
        # type: () -> str
        return self.dist.dir + '/' + self.name

    def binary_index_path(self, arch):
        # type: (str) -> str
        return self.dir + '/binary-' + arch + '/Packages'

    def source_index_path(self):
        # type: () -> str
        return self.dir + '/source/Sources'


def pool_path(name):
    # type: (str) -> str
    return POOL_DIR + '/' + name


def _check_pool_filename(name):
    # type: (str) -> None
    if not name or '/' in name or name in ('.', '..'):
        raise StructuralError("invalid file name %r" % name)


class Repository(object):
    """One distribution of an APT repository kept in a bucket

    :param bucket: the :class:`aptblob.storage.Bucket` holding the repository.
    :param dist: name of the distribution, or a :class:`Distribution`.
    :param signer: object with a ``sign(data) -> (clearsigned, detached)``
      method, or None to publish an unsigned Release file.
    """

    def __init__(self, bucket, dist, signer=None):
        # type: (Bucket, Union[str, Distribution], Any) -> None
        self.bucket = bucket
        self.dist = Distribution(dist) if isinstance(dist, str) else dist
        self.signer = signer

    def component(self, name):
        # type: (str) -> Component
        return Component(self.dist, name)

    def upload_blob(self, key, data, content_type, immutable=False):
        # type: (str, bytes, str, bool) -> IndexHashes
        """Store a blob and return its hashes

        An immutable blob that already exists is left alone if it has the
        same size and MD5 and is an IntegrityError otherwise.
        """
        hashes = hash_bytes(data)
        cache_control = DEFAULT_CACHE_CONTROL
        if immutable:
            attrs = stat_blob(self.bucket, key)
            if attrs is not None:
                if attrs.size != hashes.size or attrs.md5 != hashes.md5:
                    raise IntegrityError("upload %s: immutable object differs" % key)
                logger.info("%s already uploaded", key)
                return hashes
            cache_control = IMMUTABLE
        self.bucket.write(key, data, content_type=content_type,
                          cache_control=cache_control)
        return hashes

    def read_release(self):
        # type: () -> Paragraph
        """Return the current Release paragraph, empty if there is none"""
        key = self.dist.release_path
        data = read_blob(self.bucket, key)
        if data is None:
            logger.debug("%s does not exist yet", key)
            return Paragraph()
        try:
            return parse_release_index(data)
        except AptblobError as err:
            raise err.add_context(key)

    def write_release(self, release):
        # type: (Paragraph) -> None
        """Publish a Release paragraph, signing it if a signer is configured

        Signatures are made before anything is uploaded, so a failing signer
        leaves the published Release untouched.
        """
        data = dump_paragraphs([release]).encode('utf-8')
        signatures = None  # type: Optional[Tuple[bytes, bytes]]
        if self.signer is not None:
            logger.info("signing %s", self.dist.release_path)
            signatures = self.signer.sign(data)

        self.bucket.write(self.dist.release_path, data,
                          content_type=TEXT_CONTENT_TYPE,
                          cache_control=DEFAULT_CACHE_CONTROL)
        if signatures is None:
            return
        clearsigned, detached = signatures
        self.bucket.write(self.dist.signed_release_path, clearsigned,
                          content_type=TEXT_CONTENT_TYPE,
                          cache_control=DEFAULT_CACHE_CONTROL)
        self.bucket.write(self.dist.release_signature_path, detached,
                          content_type=TEXT_CONTENT_TYPE,
                          cache_control=DEFAULT_CACHE_CONTROL)

    def init(self, template):
        # type: (Paragraph) -> Paragraph
        """Set up the distribution from a Release template

        Checksums already listed in the current Release are carried over so
        that the existing indexes stay valid.
        """
        old_release = self.read_release()
        release = template.copy()
        for field_name in RELEASE_CHECKSUM_FIELDS:
            value = old_release.get(field_name)
            if value:
                release.set(field_name, value)
        self.write_release(release)
        return release

    def update_index(self, release, key, fields, new_packages):
        # type: (Paragraph, str, FieldTypes, Iterable[Paragraph]) -> Paragraph
        """Add entries to a Packages or Sources index

        The index at key is read (a missing index counts as empty), the new
        entries are added, duplicates are dropped and the result is uploaded
        both plain and gzipped.  Returns a copy of release listing the new
        signatures of both variants; release itself is not modified.
        """
        data = read_blob(self.bucket, key)
        try:
            if data is None:
                logger.debug("%s does not exist yet", key)
                existing = []  # type: List[Paragraph]
            else:
                existing = parse_paragraphs(data, fields)
            packages = dedupe_packages(existing + list(new_packages))
        except AptblobError as err:
            raise err.add_context(key)

        plain = dump_paragraphs(packages).encode('utf-8')
        compressed = gzip.compress(plain, mtime=0)
        plain_hashes = self.upload_blob(key, plain, TEXT_CONTENT_TYPE)
        compressed_key = key + GZIP_EXTENSION
        compressed_hashes = self.upload_blob(compressed_key, compressed, GZIP_CONTENT_TYPE)
        logger.info("%s: %d packages", key, len(packages))

        variants = [
            (self.dist.relative_path(key), plain_hashes),
            (self.dist.relative_path(compressed_key), compressed_hashes),
        ]
        try:
            for field_name, algorithm in RELEASE_CHECKSUM_FIELDS.items():
                release = update_signature(release, field_name, [
                    IndexSignature(filename=filename, size=hashes.size,
                                   checksum=hashes.digest(algorithm))
                    for filename, hashes in variants
                ])
        except AptblobError as err:
            raise err.add_context(self.dist.release_path)
        return release

    def upload_binary_package(self, path):
        # type: (str) -> Tuple[str, Paragraph]
        """Upload a .deb to the pool and return its architecture and Packages entry"""
        name = os.path.basename(path)
        try:
            package = parse_single(extract_control(path), CONTROL_FIELDS)
            package = promote_package_field(package)
            arch = package.get('Architecture')
            if not arch:
                raise StructuralError("missing Architecture field")
        except AptblobError as err:
            raise err.add_context("upload binary package %s" % name)

        with open(path, 'rb') as f:
            data = f.read()
        key = pool_path(name)
        hashes = self.upload_blob(key, data, DEB_CONTENT_TYPE, immutable=True)
        package.set('Filename', key)
        package.set('Size', str(hashes.size))
        package.set('MD5sum', hashes.md5.hex())
        package.set('SHA1', hashes.sha1.hex())
        package.set('SHA256', hashes.sha256.hex())
        return arch, package

    def upload_source_package(self, path):
        # type: (str) -> Paragraph
        """Upload a .dsc and the files it lists and return its Sources entry"""
        dsc_name = os.path.basename(path)
        name = dsc_name[:-len('.dsc')] if dsc_name.endswith('.dsc') else dsc_name
        directory = pool_path(name)
        with open(path, 'rb') as f:
            dsc = f.read()
        try:
            package = parse_single(strip_clearsign(dsc), SOURCE_CONTROL_FIELDS)
            package = transform_source_control(package, directory)
            try:
                files = parse_index_signatures(package.get('Files'), checksum_size('MD5Sum'))
            except AptblobError as err:
                raise err.add_context("Files")
            for signature in files:
                _check_pool_filename(signature.filename)
        except AptblobError as err:
            raise err.add_context("upload source package %s" % name)

        self.upload_blob(directory + '/' + dsc_name, dsc, TEXT_CONTENT_TYPE, immutable=True)
        source_dir = os.path.dirname(path)
        for signature in files:
            with open(os.path.join(source_dir, signature.filename), 'rb') as f:
                data = f.read()
            hashes = hash_bytes(data)
            if hashes.size != signature.size or hashes.md5 != signature.checksum:
                raise IntegrityError("upload source package %s: %s does not match %s" % (
                    name, signature.filename, dsc_name))
            content_type = mimetypes.guess_type(signature.filename)[0] or DEFAULT_CONTENT_TYPE
            self.upload_blob(directory + '/' + signature.filename, data, content_type,
                             immutable=True)
        return package

    def upload(self, component, paths):
        # type: (Union[str, Component], Iterable[str]) -> Optional[Paragraph]
        """Add packages to a component and publish the new Release

        Files ending in ``.dsc`` are source packages, anything else is taken
        to be a binary package.  Returns the published Release paragraph, or
        None if paths is empty.
        """
        if isinstance(component, str):
            component = self.component(component)
        paths = list(paths)
        if not paths:
            return None

        binaries = {}  # type: Dict[str, List[Paragraph]]
        sources = []  # type: List[Paragraph]
        for path in paths:
            if path.endswith('.dsc'):
                sources.append(self.upload_source_package(path))
            else:
                arch, package = self.upload_binary_package(path)
                binaries.setdefault(arch, []).append(package)

        release = self.read_release()
        for arch in sorted(binaries):
            release = self.update_index(release, component.binary_index_path(arch),
                                        CONTROL_FIELDS, binaries[arch])
        if sources:
            release = self.update_index(release, component.source_index_path(),
                                        SOURCE_CONTROL_FIELDS, sources)
        self.write_release(release)
        return release
