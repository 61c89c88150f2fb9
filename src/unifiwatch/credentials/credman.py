"""Windows Credential Manager backend for credential storage.

Stores each secret as a generic credential named ``{prefix}{key}`` with
local-machine persistence, through pywin32's ``win32cred`` bindings. The
entries are visible in the Credential Manager control panel.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from unifiwatch.credentials.errors import SecretStoreError
from unifiwatch.credentials.store import SecretStore, StorageMethod, is_blank
from unifiwatch.host import APP_NAME, current_username

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_ERROR_NOT_FOUND = 1168


def _winerror(exc: BaseException) -> int | None:
    return getattr(exc, "winerror", None)


class WindowsCredentialStore(SecretStore):
    """Stores secrets in Windows Credential Manager via ``win32cred``.

    Parameters
    ----------
    target_prefix:
        Prepended to every key to form the credential target name.
    """

    def __init__(self, target_prefix: str = APP_NAME) -> None:
        self._prefix = target_prefix
        try:
            self._win32cred = importlib.import_module("win32cred")
            self._error: type[BaseException] = importlib.import_module("pywintypes").error
        except ImportError as exc:
            raise SecretStoreError("pywin32 is required for Credential Manager access") from exc

    @property
    def storage_method(self) -> StorageMethod:
        return StorageMethod.WINDOWS_CREDENTIAL_MANAGER

    @property
    def storage_method_description(self) -> str:
        return "Windows Credential Manager"

    def _target(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _run(self, func: Callable[..., _T], *args: object) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    # ------------------------------------------------------------------
    # Blocking Win32 calls
    # ------------------------------------------------------------------

    def _write(self, key: str, secret: str, label: str) -> None:
        credential = {
            "Type": self._win32cred.CRED_TYPE_GENERIC,
            "TargetName": self._target(key),
            "UserName": current_username(),
            "CredentialBlob": secret,
            "Persist": self._win32cred.CRED_PERSIST_LOCAL_MACHINE,
            "Comment": label,
        }
        self._win32cred.CredWrite(credential, 0)

    def _read(self, key: str) -> str | None:
        try:
            credential = self._win32cred.CredRead(
                self._target(key), self._win32cred.CRED_TYPE_GENERIC, 0
            )
        except self._error as exc:
            if _winerror(exc) == _ERROR_NOT_FOUND:
                return None
            raise
        blob = credential.get("CredentialBlob")
        if not blob:
            logger.warning("Retrieved credential has no blob for key %s", key)
            return None
        if isinstance(blob, bytes):
            return blob.decode("utf-16-le")
        return blob

    def _remove(self, key: str) -> None:
        try:
            self._win32cred.CredDelete(self._target(key), self._win32cred.CRED_TYPE_GENERIC, 0)
        except self._error as exc:
            if _winerror(exc) != _ERROR_NOT_FOUND:
                raise

    def _enumerate(self) -> set[str]:
        try:
            credentials: Any = self._win32cred.CredEnumerate(f"{self._prefix}*", 0)
        except self._error as exc:
            if _winerror(exc) == _ERROR_NOT_FOUND:
                return set()
            raise
        keys: set[str] = set()
        for credential in credentials or ():
            target = credential.get("TargetName", "")
            if target.startswith(self._prefix):
                keys.add(target[len(self._prefix):])
        return keys

    # ------------------------------------------------------------------
    # SecretStore
    # ------------------------------------------------------------------

    async def store(self, key: str, secret: str, label: str = "") -> bool:
        if is_blank(key) or is_blank(secret):
            logger.warning("store called with empty key or secret")
            return False
        try:
            await self._run(self._write, key, secret, label)
        except self._error as exc:
            logger.error("CredWrite failed with error code %s for key %s", _winerror(exc), key)
            return False
        logger.debug("Credential stored for key %s", key)
        return True

    async def retrieve(self, key: str) -> str | None:
        if is_blank(key):
            logger.warning("retrieve called with empty key")
            return None
        try:
            return await self._run(self._read, key)
        except self._error as exc:
            logger.warning("CredRead failed with error code %s for key %s", _winerror(exc), key)
            return None

    async def delete(self, key: str) -> bool:
        if is_blank(key):
            logger.warning("delete called with empty key")
            return False
        try:
            await self._run(self._remove, key)
        except self._error as exc:
            logger.warning("CredDelete failed with error code %s for key %s", _winerror(exc), key)
            return False
        return True

    async def exists(self, key: str) -> bool:
        if is_blank(key):
            return False
        try:
            return await self._run(self._read, key) is not None
        except self._error:
            logger.error("Error checking credential existence for key %s", key, exc_info=True)
            return False

    async def list_keys(self) -> set[str]:
        try:
            keys = await self._run(self._enumerate)
        except self._error:
            logger.error("Error listing credentials", exc_info=True)
            return set()
        logger.debug("Found %d credentials for application", len(keys))
        return keys
