"""Host platform detection and per-platform filesystem conventions."""

from __future__ import annotations

import getpass
import logging
import os
import pathlib
import socket
import sys
from enum import StrEnum

logger = logging.getLogger(__name__)

APP_NAME = "UnifiWatch"
_APP_DIR_NAME = "unifiwatch"


class HostPlatform(StrEnum):
    """Operating-system families with distinct secret stores."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    OTHER = "other"


def current_platform() -> HostPlatform:
    """Map ``sys.platform`` onto a :class:`HostPlatform`."""
    if sys.platform == "win32":
        return HostPlatform.WINDOWS
    if sys.platform == "darwin":
        return HostPlatform.MACOS
    if sys.platform.startswith("linux"):
        return HostPlatform.LINUX
    return HostPlatform.OTHER


def configuration_directory(host: HostPlatform | None = None) -> pathlib.Path:
    """Return the per-user configuration directory for *host*.

    Windows: ``%APPDATA%\\UnifiWatch``
    macOS:   ``~/.config/unifiwatch`` if present, else
             ``~/Library/Application Support/UnifiWatch``
    Linux:   ``~/.config/unifiwatch``, or ``/etc/unifiwatch`` when running as
             root and that directory exists
    other:   ``~/.config/unifiwatch``
    """
    host = host or current_platform()
    home = pathlib.Path.home()

    if host is HostPlatform.WINDOWS:
        app_data = os.environ.get("APPDATA")
        base = pathlib.Path(app_data) if app_data else home / "AppData" / "Roaming"
        return base / APP_NAME

    if host is HostPlatform.MACOS:
        config_dir = home / ".config" / _APP_DIR_NAME
        if config_dir.is_dir():
            return config_dir
        return home / "Library" / "Application Support" / APP_NAME

    if host is HostPlatform.LINUX:
        system_dir = pathlib.Path("/etc") / _APP_DIR_NAME
        if hasattr(os, "geteuid") and os.geteuid() == 0 and system_dir.is_dir():
            return system_dir

    return home / ".config" / _APP_DIR_NAME


def restrict_permissions(path: pathlib.Path, mode: int) -> None:
    """Apply an owner-only *mode* on POSIX hosts. No-op on Windows."""
    if current_platform() is HostPlatform.WINDOWS:
        return
    try:
        path.chmod(mode)
    except OSError:
        # The file is still usable; only its mode is looser than intended.
        logger.warning("Could not set mode %o on %s", mode, path, exc_info=True)


def ensure_configuration_directory(path: pathlib.Path) -> pathlib.Path:
    """Create *path* (mode 0700 on POSIX) if it does not already exist."""
    if not path.is_dir():
        path.mkdir(parents=True, exist_ok=True)
        restrict_permissions(path, 0o700)
    return path


def current_username() -> str:
    """Login name of the current OS user."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER") or os.environ.get("USERNAME") or ""


def current_hostname() -> str:
    """Host name of this machine."""
    return socket.gethostname()
