"""Shared test fixtures for UnifiWatch credential storage tests."""

import pathlib

import pytest

from unifiwatch.credentials.encrypted_file import EncryptedFileStore
from unifiwatch.credentials.machine_id import MachineIdentity

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]


@pytest.fixture
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def identity() -> MachineIdentity:
    """A fixed machine identity so tests never touch the real host id."""
    return MachineIdentity(lambda: "test-machine-0001")


@pytest.fixture
def credentials_path(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "credentials.enc.json"


@pytest.fixture
def file_store(credentials_path: pathlib.Path, identity: MachineIdentity) -> EncryptedFileStore:
    return EncryptedFileStore(file_path=credentials_path, identity=identity)
