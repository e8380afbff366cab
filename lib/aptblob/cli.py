""" Command line interface

::

    aptblob [-k KEYID] [--gpg PATH] [-v] init BUCKET DIST < Release
    aptblob [-k KEYID] [--gpg PATH] [-v] upload [--component NAME] BUCKET DIST PACKAGE...
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

import argparse
import logging
import os
import sys

from typing import List, Optional

from aptblob.control import RELEASE_FIELDS, parse_single
from aptblob.errors import AptblobError
from aptblob.repository import Repository
from aptblob.signing import GpgSigner
from aptblob.storage import open_bucket


logger = logging.getLogger(__name__)

PROG = 'aptblob'
DEFAULT_COMPONENT = 'main'

_LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def _build_parser():
    # type: () -> argparse.ArgumentParser
    parser = argparse.ArgumentParser(
        prog=PROG,
        description='Maintain an APT repository in blob storage.')
    parser.add_argument(
        '-k', '--keyid', default=os.environ.get('APTBLOB_KEYID') or None,
        help='GPG key to sign the Release file with '
             '(default: $APTBLOB_KEYID, unsigned if unset)')
    parser.add_argument(
        '--gpg', default=os.environ.get('APTBLOB_GPG') or 'gpg',
        help='gpg executable (default: $APTBLOB_GPG or gpg)')
    parser.add_argument(
        '-v', '--verbose', action='count', default=0,
        help='log progress; give twice for debug output')
    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    init_parser = subparsers.add_parser(
        'init', help='set up a distribution from a Release template on stdin')
    init_parser.add_argument('bucket', metavar='BUCKET', help='bucket URL or directory')
    init_parser.add_argument('dist', metavar='DIST', help='distribution name')

    upload_parser = subparsers.add_parser(
        'upload', help='add .deb and .dsc packages to a distribution')
    upload_parser.add_argument(
        '--component', default=DEFAULT_COMPONENT,
        help='component to add the packages to (default: %(default)s)')
    upload_parser.add_argument('bucket', metavar='BUCKET', help='bucket URL or directory')
    upload_parser.add_argument('dist', metavar='DIST', help='distribution name')
    upload_parser.add_argument('packages', metavar='PACKAGE', nargs='+',
                               help='.deb or .dsc file')
    return parser


def _init(repo, args):
    # type: (Repository, argparse.Namespace) -> None
    if sys.stdin.isatty():
        print("%s: reading Release from stdin..." % PROG, file=sys.stderr)
    try:
        template = parse_single(sys.stdin.buffer.read(), RELEASE_FIELDS)
    except AptblobError as err:
        raise err.add_context("Release template")
    repo.init(template)


def _upload(repo, args):
    # type: (Repository, argparse.Namespace) -> None
    repo.upload(args.component, args.packages)


_COMMANDS = {
    'init': _init,
    'upload': _upload,
}


def main(argv=None):
    # type: (Optional[List[str]]) -> int
    args = _build_parser().parse_args(argv)
    level = _LOG_LEVELS[min(args.verbose, len(_LOG_LEVELS) - 1)]
    logging.basicConfig(format='%(name)s: %(levelname)s: %(message)s', level=level)

    signer = None
    if args.keyid:
        signer = GpgSigner(args.keyid, gpg=args.gpg)
    try:
        repo = Repository(open_bucket(args.bucket), args.dist, signer=signer)
        _COMMANDS[args.command](repo, args)
    except (AptblobError, OSError) as err:
        logger.debug("%s failed", args.command, exc_info=True)
        print("%s: %s" % (PROG, err), file=sys.stderr)
        return 1
    return 0
