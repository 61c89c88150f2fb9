"""Tests for the Linux Secret Service facade."""

import pathlib
from unittest.mock import patch

import pytest

from unifiwatch.credentials.machine_id import MachineIdentity
from unifiwatch.credentials.secret_service import LinuxSecretServiceStore


@pytest.fixture
def store(tmp_path: pathlib.Path, identity: MachineIdentity) -> LinuxSecretServiceStore:
    return LinuxSecretServiceStore(file_path=tmp_path / "credentials.enc", identity=identity)


class TestLinuxSecretServiceStore:
    def test_identifies_as_secret_service(self, store: LinuxSecretServiceStore) -> None:
        assert store.storage_method == "linux-secret-service"
        assert "Secret Service" in store.storage_method_description

    def test_default_path(self, tmp_path: pathlib.Path) -> None:
        with patch("unifiwatch.host.pathlib.Path.home", return_value=tmp_path):
            store = LinuxSecretServiceStore(identity=MachineIdentity(lambda: "m"))
        assert store.file_path == tmp_path / ".config" / "unifiwatch" / "credentials.enc"

    def test_warns_about_file_fallback(
        self, tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level("WARNING"):
            LinuxSecretServiceStore(file_path=tmp_path / "c.enc", identity=MachineIdentity(lambda: "m"))
        assert "Secret Service integration is not available" in caplog.text

    @pytest.mark.asyncio
    async def test_operations_delegate_to_encrypted_file(self, store: LinuxSecretServiceStore) -> None:
        assert await store.store("a", "1") is True
        assert await store.store("b", "2") is True
        assert await store.store("a", "3") is True
        assert await store.list_keys() == {"a", "b"}
        assert await store.retrieve("a") == "3"
        assert await store.exists("b") is True
        assert await store.delete("b") is True
        assert await store.delete("b") is True
        assert await store.retrieve("b") is None

        raw = store.file_path.read_bytes()
        assert b'"a"' not in raw
        assert raw[0] == 32

    @pytest.mark.asyncio
    async def test_blank_input(self, store: LinuxSecretServiceStore) -> None:
        assert await store.store("", "v") is False
        assert not store.file_path.exists()
