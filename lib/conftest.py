import os

from typing import Iterator

import pytest

from aptblob.repository import Repository
from aptblob.storage import MemoryBucket
from aptblob.tests.packaging import FakeSigner


@pytest.fixture(autouse=True)
def no_signing_environment(monkeypatch):
    # type: (pytest.MonkeyPatch) -> Iterator[None]
    # The command line defaults must not pick up the developer's keys.
    for name in ('APTBLOB_KEYID', 'APTBLOB_GPG'):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture()
def bucket():
    # type: () -> MemoryBucket
    return MemoryBucket()


@pytest.fixture()
def signer():
    # type: () -> FakeSigner
    return FakeSigner()


@pytest.fixture()
def repo(bucket):
    # type: (MemoryBucket) -> Repository
    return Repository(bucket, 'stable')


@pytest.fixture()
def signed_repo(bucket, signer):
    # type: (MemoryBucket, FakeSigner) -> Repository
    return Repository(bucket, 'stable', signer=signer)


@pytest.fixture()
def workdir(tmp_path):
    # type: (object) -> str
    path = os.path.join(str(tmp_path), 'incoming')
    os.mkdir(path)
    return path
