"""Stable per-host identifier used as key-derivation input.

Resolution order:
    Linux  -- ``/etc/machine-id``, then ``/var/lib/dbus/machine-id``
    macOS  -- ``IOPlatformUUID`` from ``ioreg``
    any    -- SHA-256 of hostname + MAC of the first up, non-loopback
              interface (sorted by name)
    last   -- SHA-256 of the hostname alone

The identifier is never persisted or transmitted. Resolving it may spawn
a subprocess, so the result is memoized for the life of the process.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import pathlib
import re
import subprocess
import threading
from collections.abc import Callable

import psutil

from unifiwatch.host import HostPlatform, current_hostname, current_platform

logger = logging.getLogger(__name__)

_LINUX_MACHINE_ID_PATHS = (
    pathlib.Path("/etc/machine-id"),
    pathlib.Path("/var/lib/dbus/machine-id"),
)
_IOREG_COMMAND = ("ioreg", "-rd1", "-c", "IOPlatformExpertDevice")
_IOREG_TIMEOUT_SECONDS = 10
_PLATFORM_UUID_RE = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')
_NO_MAC = "00:00:00:00:00:00"


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest().upper()


def _read_linux_machine_id() -> str | None:
    for path in _LINUX_MACHINE_ID_PATHS:
        if path.is_file():
            value = path.read_text().strip()
            if value:
                return value
    return None


def _read_macos_platform_uuid() -> str | None:
    result = subprocess.run(
        _IOREG_COMMAND,
        capture_output=True,
        text=True,
        timeout=_IOREG_TIMEOUT_SECONDS,
    )
    match = _PLATFORM_UUID_RE.search(result.stdout)
    return match.group(1) if match else None


def _is_loopback(addresses: list) -> bool:
    for addr in addresses:
        try:
            if ipaddress.ip_address(addr.address.split("%")[0]).is_loopback:
                return True
        except ValueError:
            continue
    return False


def primary_mac_address() -> str:
    """MAC of the first up, non-loopback interface, as uppercase hex digits."""
    addrs = psutil.net_if_addrs()
    stats = psutil.net_if_stats()
    for name in sorted(addrs):
        if_stats = stats.get(name)
        if if_stats is None or not if_stats.isup:
            continue
        if _is_loopback(addrs[name]):
            continue
        for addr in addrs[name]:
            if addr.family == psutil.AF_LINK:
                return addr.address.replace(":", "").replace("-", "").upper()
        return ""
    return _NO_MAC


def interface_fingerprint() -> str:
    """Hash of hostname and primary MAC address."""
    return _sha256_hex(f"{current_hostname()}:{primary_mac_address()}")


def resolve_machine_identity(host: HostPlatform | None = None) -> str:
    """Run the resolution chain once. Never raises."""
    host = host or current_platform()
    try:
        if host is HostPlatform.LINUX:
            machine_id = _read_linux_machine_id()
            if machine_id:
                return machine_id
        elif host is HostPlatform.MACOS:
            platform_uuid = _read_macos_platform_uuid()
            if platform_uuid:
                return platform_uuid
        return interface_fingerprint()
    except Exception:
        logger.warning("Could not resolve machine identifier, using hostname hash", exc_info=True)
        return _sha256_hex(current_hostname())


class MachineIdentity:
    """Lazily resolved, memoized machine identifier.

    ``get()`` uses double-checked locking so concurrent first callers
    resolve the identifier exactly once.

    Parameters
    ----------
    resolver:
        Zero-argument callable producing the identifier. Defaults to
        :func:`resolve_machine_identity` for the current platform.
    """

    def __init__(self, resolver: Callable[[], str] | None = None) -> None:
        self._resolver = resolver or resolve_machine_identity
        self._lock = threading.Lock()
        self._value: str | None = None

    def get(self) -> str:
        value = self._value
        if value is not None:
            return value
        with self._lock:
            if self._value is None:
                self._value = self._resolver()
                logger.debug("Machine identifier resolved")
            return self._value

    def reset(self) -> None:
        """Forget the memoized value (next ``get()`` resolves again)."""
        with self._lock:
            self._value = None


_default_identity = MachineIdentity()


def machine_identity() -> MachineIdentity:
    """The process-wide :class:`MachineIdentity`."""
    return _default_identity
