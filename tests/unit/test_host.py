"""Tests for host platform detection and directory conventions."""

import os
import pathlib
import sys
from unittest.mock import patch

import pytest

from unifiwatch.host import (
    HostPlatform,
    configuration_directory,
    current_platform,
    ensure_configuration_directory,
    restrict_permissions,
)


class TestCurrentPlatform:
    @pytest.mark.parametrize(
        ("sys_platform", "expected"),
        [
            ("win32", HostPlatform.WINDOWS),
            ("darwin", HostPlatform.MACOS),
            ("linux", HostPlatform.LINUX),
            ("freebsd14", HostPlatform.OTHER),
        ],
    )
    def test_maps_sys_platform(self, sys_platform: str, expected: HostPlatform) -> None:
        with patch("unifiwatch.host.sys.platform", sys_platform):
            assert current_platform() is expected


class TestConfigurationDirectory:
    @pytest.fixture(autouse=True)
    def fake_home(self, tmp_path: pathlib.Path):
        with patch("unifiwatch.host.pathlib.Path.home", return_value=tmp_path):
            yield tmp_path

    def test_windows_uses_appdata(self, tmp_path: pathlib.Path) -> None:
        with patch.dict(os.environ, {"APPDATA": str(tmp_path / "Roaming")}):
            assert configuration_directory(HostPlatform.WINDOWS) == tmp_path / "Roaming" / "UnifiWatch"

    def test_macos_application_support(self, tmp_path: pathlib.Path) -> None:
        expected = tmp_path / "Library" / "Application Support" / "UnifiWatch"
        assert configuration_directory(HostPlatform.MACOS) == expected

    def test_macos_prefers_existing_dot_config(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / ".config" / "unifiwatch").mkdir(parents=True)
        assert configuration_directory(HostPlatform.MACOS) == tmp_path / ".config" / "unifiwatch"

    def test_linux(self, tmp_path: pathlib.Path) -> None:
        with patch("unifiwatch.host.os.geteuid", return_value=1000, create=True):
            assert configuration_directory(HostPlatform.LINUX) == tmp_path / ".config" / "unifiwatch"

    def test_other(self, tmp_path: pathlib.Path) -> None:
        assert configuration_directory(HostPlatform.OTHER) == tmp_path / ".config" / "unifiwatch"


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
class TestPermissions:
    def test_ensure_directory_is_owner_only(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "a" / "unifiwatch"
        assert ensure_configuration_directory(target) == target
        assert target.stat().st_mode & 0o777 == 0o700

    def test_restrict_permissions(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "secret"
        path.write_text("x")
        restrict_permissions(path, 0o600)
        assert path.stat().st_mode & 0o777 == 0o600

    def test_restrict_missing_file_only_warns(
        self, tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level("WARNING"):
            restrict_permissions(tmp_path / "missing", 0o600)
        assert "Could not set mode" in caplog.text
