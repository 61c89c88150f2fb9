"""Windows Data Protection API (DPAPI) adapter.

Encrypts with the current user's DPAPI master key via pywin32's
``win32crypt``. The OS manages the key material entirely; blobs are
self-describing, so no envelope framing is added.
"""

from __future__ import annotations

import importlib
import logging
from typing import Protocol

from unifiwatch.credentials.errors import DataProtectionError
from unifiwatch.host import HostPlatform, current_platform

logger = logging.getLogger(__name__)


class DataProtector(Protocol):
    """OS-native data protection: opaque in, opaque out."""

    def protect(self, data: bytes) -> bytes: ...

    def unprotect(self, blob: bytes) -> bytes: ...


class WindowsDataProtection:
    """Current-user DPAPI protection through ``win32crypt``."""

    def __init__(self) -> None:
        try:
            self._win32crypt = importlib.import_module("win32crypt")
        except ImportError as exc:
            raise DataProtectionError("pywin32 is required for DPAPI access") from exc

    def protect(self, data: bytes) -> bytes:
        try:
            return self._win32crypt.CryptProtectData(data, None, None, None, None, 0)
        except Exception as exc:
            raise DataProtectionError("CryptProtectData failed") from exc

    def unprotect(self, blob: bytes) -> bytes:
        try:
            _description, data = self._win32crypt.CryptUnprotectData(blob, None, None, None, 0)
        except Exception as exc:
            raise DataProtectionError("CryptUnprotectData failed") from exc
        return data


def default_protector(host: HostPlatform | None = None) -> DataProtector | None:
    """Return the OS data-protection facility for *host*, or None if it has none.

    On Windows without pywin32 this logs a warning and returns None, so the
    encrypted-file store falls back to the AES envelope.
    """
    host = host or current_platform()
    if host is not HostPlatform.WINDOWS:
        return None
    try:
        return WindowsDataProtection()
    except DataProtectionError:
        logger.warning("DPAPI unavailable; encrypting credentials with the AES fallback", exc_info=True)
        return None
