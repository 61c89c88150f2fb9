"""Tests for storage method resolution and store construction."""

import os
import pathlib
import sys
import types
from unittest.mock import patch

import pytest

from unifiwatch.config import Settings
from unifiwatch.credentials.encrypted_file import EncryptedFileStore
from unifiwatch.credentials.environment import EnvironmentVariableStore
from unifiwatch.credentials.errors import PlatformUnsupportedError
from unifiwatch.credentials.factory import create_secret_store, resolve_storage_method
from unifiwatch.credentials.keychain import KeychainStore
from unifiwatch.credentials.secret_service import LinuxSecretServiceStore
from unifiwatch.credentials.store import StorageMethod
from unifiwatch.host import HostPlatform


class TestResolveStorageMethod:
    @pytest.mark.parametrize(
        ("host", "expected"),
        [
            (HostPlatform.WINDOWS, StorageMethod.WINDOWS_CREDENTIAL_MANAGER),
            (HostPlatform.MACOS, StorageMethod.MACOS_KEYCHAIN),
            (HostPlatform.LINUX, StorageMethod.LINUX_SECRET_SERVICE),
            (HostPlatform.OTHER, StorageMethod.ENCRYPTED_FILE),
        ],
    )
    @pytest.mark.parametrize("policy", [None, "", "  ", "auto", "AUTO"])
    def test_auto_selects_platform_default(
        self, policy: str | None, host: HostPlatform, expected: StorageMethod
    ) -> None:
        assert resolve_storage_method(policy, host) is expected

    @pytest.mark.parametrize("host", list(HostPlatform))
    @pytest.mark.parametrize(
        "method", [StorageMethod.ENCRYPTED_FILE, StorageMethod.ENVIRONMENT_VARIABLES]
    )
    def test_portable_methods_work_everywhere(
        self, method: StorageMethod, host: HostPlatform
    ) -> None:
        assert resolve_storage_method(method.value, host) is method

    @pytest.mark.parametrize(
        ("method", "host"),
        [
            (StorageMethod.WINDOWS_CREDENTIAL_MANAGER, HostPlatform.WINDOWS),
            (StorageMethod.MACOS_KEYCHAIN, HostPlatform.MACOS),
            (StorageMethod.LINUX_SECRET_SERVICE, HostPlatform.LINUX),
        ],
    )
    def test_native_method_on_its_platform(self, method: StorageMethod, host: HostPlatform) -> None:
        assert resolve_storage_method(method.value, host) is method

    @pytest.mark.parametrize(
        ("policy", "host"),
        [
            ("macos-keychain", HostPlatform.LINUX),
            ("windows-credential-manager", HostPlatform.MACOS),
            ("linux-secret-service", HostPlatform.WINDOWS),
            ("macos-keychain", HostPlatform.OTHER),
        ],
    )
    def test_native_method_on_other_platform_rejected(self, policy: str, host: HostPlatform) -> None:
        with pytest.raises(PlatformUnsupportedError):
            resolve_storage_method(policy, host)

    def test_unknown_policy_rejected(self) -> None:
        with pytest.raises(PlatformUnsupportedError, match="plaintext"):
            resolve_storage_method("plaintext", HostPlatform.LINUX)

    def test_policy_is_case_insensitive(self) -> None:
        assert resolve_storage_method(" Encrypted-File ", HostPlatform.LINUX) is StorageMethod.ENCRYPTED_FILE


class TestCreateSecretStore:
    @pytest.fixture
    def settings(self, tmp_path: pathlib.Path) -> Settings:
        return Settings(storage={"data_dir": str(tmp_path)})

    def test_auto_on_linux(self, settings: Settings, tmp_path: pathlib.Path) -> None:
        store = create_secret_store(settings=settings, host=HostPlatform.LINUX)
        assert isinstance(store, LinuxSecretServiceStore)
        assert store.storage_method == "linux-secret-service"
        assert store.file_path == tmp_path / "credentials.enc"

    def test_auto_on_macos(self) -> None:
        settings = Settings(keychain={"service_name": "com.example.uw", "timeout_seconds": 3})
        store = create_secret_store(settings=settings, host=HostPlatform.MACOS)
        assert isinstance(store, KeychainStore)
        assert store.storage_method == "macos-keychain"

    def test_auto_on_other_platform(self, settings: Settings, tmp_path: pathlib.Path) -> None:
        store = create_secret_store(settings=settings, host=HostPlatform.OTHER)
        assert isinstance(store, EncryptedFileStore)
        assert store.file_path == tmp_path / "credentials.enc.json"

    def test_explicit_policy_overrides_settings(self, settings: Settings) -> None:
        store = create_secret_store("environment-variables", settings=settings, host=HostPlatform.LINUX)
        assert isinstance(store, EnvironmentVariableStore)

    def test_settings_method_used_when_no_policy(self, tmp_path: pathlib.Path) -> None:
        settings = Settings(storage={"method": "encrypted-file", "data_dir": str(tmp_path)})
        store = create_secret_store(settings=settings, host=HostPlatform.LINUX)
        assert store.storage_method == "encrypted-file"

    def test_encrypted_file_uses_dpapi_on_windows(self, settings: Settings) -> None:
        win32crypt = types.ModuleType("win32crypt")
        with patch.dict(sys.modules, {"win32crypt": win32crypt}):
            store = create_secret_store("encrypted-file", settings=settings, host=HostPlatform.WINDOWS)
        assert isinstance(store, EncryptedFileStore)
        assert store._protector is not None

    def test_encrypted_file_warns(
        self, settings: Settings, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level("WARNING"):
            create_secret_store("encrypted-file", settings=settings, host=HostPlatform.LINUX)
        assert "encrypted file credential storage" in caplog.text

    def test_mismatched_native_policy_raises(self, settings: Settings) -> None:
        with pytest.raises(PlatformUnsupportedError):
            create_secret_store("windows-credential-manager", settings=settings, host=HostPlatform.LINUX)

    def test_env_override_selects_backend_without_settings(self) -> None:
        with patch.dict(os.environ, {"UNIFIWATCH_STORAGE__METHOD": "environment-variables"}):
            store = create_secret_store(host=HostPlatform.LINUX)
        assert isinstance(store, EnvironmentVariableStore)
        assert store.storage_method == "environment-variables"

    def test_env_override_reaches_backend_options(self) -> None:
        with patch.dict(os.environ, {"UNIFIWATCH_KEYCHAIN__SERVICE_NAME": "com.example.env"}):
            store = create_secret_store(host=HostPlatform.MACOS)
        assert isinstance(store, KeychainStore)
        assert store._service == "com.example.env"

    def test_encrypted_file_on_windows_without_pywin32(self, settings: Settings) -> None:
        with patch.dict(sys.modules, {"win32crypt": None}):
            store = create_secret_store("encrypted-file", settings=settings, host=HostPlatform.WINDOWS)
        assert isinstance(store, EncryptedFileStore)
        assert store._protector is None

    def test_default_data_dir(self, tmp_path: pathlib.Path) -> None:
        with patch("unifiwatch.host.pathlib.Path.home", return_value=tmp_path):
            store = create_secret_store("encrypted-file", settings=Settings(), host=HostPlatform.OTHER)
        assert isinstance(store, EncryptedFileStore)
        assert store.file_path == tmp_path / ".config" / "unifiwatch" / "credentials.enc.json"
