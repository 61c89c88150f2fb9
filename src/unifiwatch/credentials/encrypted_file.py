"""Encrypted JSON file backend for credential storage.

Fallback for hosts where no native secret store is selected. The whole
credential map is serialized as compact JSON and encrypted as one blob:

* with the OS data-protection facility when the host has one (DPAPI on
  Windows), or
* with AES-256-CBC under a PBKDF2 key bound to machine, user and host,
  framed as an :class:`~unifiwatch.credentials.envelope.Envelope`.

Decryption tries the OS facility first and falls back to the envelope, so
files written on either path stay readable. A file that cannot be decrypted
or parsed is treated as empty: one corrupt file must not block startup.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import pathlib
import tempfile
import threading
from collections.abc import Callable
from typing import TypeVar

from unifiwatch.credentials.cipher import decrypt_envelope, encrypt_envelope
from unifiwatch.credentials.dpapi import DataProtector
from unifiwatch.credentials.errors import CryptographicError, DataProtectionError
from unifiwatch.credentials.kdf import MIN_ITERATIONS, KeyContext
from unifiwatch.credentials.machine_id import MachineIdentity, machine_identity
from unifiwatch.credentials.store import SecretStore, StorageMethod, is_blank
from unifiwatch.host import ensure_configuration_directory, restrict_permissions

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_FILE_MODE = 0o600


def _looks_like_json(text: str) -> bool:
    return text.startswith("{") or text.startswith("[")


class EncryptedFileStore(SecretStore):
    """Stores credentials as a single encrypted file on disk.

    Parameters
    ----------
    file_path:
        Path to the encrypted credentials file. Created on first write.
    identity:
        Machine identity used for key derivation. Defaults to the
        process-wide instance.
    protector:
        OS data-protection facility, or ``None`` to always use the AES
        envelope (see :func:`~unifiwatch.credentials.dpapi.default_protector`).
    iterations:
        PBKDF2 iteration count for the AES path.
    """

    def __init__(
        self,
        file_path: pathlib.Path,
        identity: MachineIdentity | None = None,
        protector: DataProtector | None = None,
        iterations: int = MIN_ITERATIONS,
    ) -> None:
        if iterations < MIN_ITERATIONS:
            raise ValueError(f"iterations must be >= {MIN_ITERATIONS}")
        self._path = file_path
        self._identity = identity or machine_identity()
        self._protector = protector
        self._iterations = iterations
        self._lock = threading.Lock()

    @property
    def storage_method(self) -> StorageMethod:
        return StorageMethod.ENCRYPTED_FILE

    @property
    def storage_method_description(self) -> str:
        return "Encrypted local file (fallback method)"

    @property
    def file_path(self) -> pathlib.Path:
        return self._path

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def _encrypt(self, plaintext: str) -> bytes:
        if self._protector is not None:
            return self._protector.protect(plaintext.encode("utf-8"))
        return encrypt_envelope(plaintext, KeyContext.current(self._identity), self._iterations)

    def _decrypt(self, data: bytes) -> str:
        if self._protector is not None:
            try:
                text = self._protector.unprotect(data).decode("utf-8")
                if _looks_like_json(text):
                    return text
            except (DataProtectionError, UnicodeDecodeError):
                pass
            # Not ours, or written by the AES path on another host.
        return decrypt_envelope(data, KeyContext.current(self._identity), self._iterations)

    # ------------------------------------------------------------------
    # File I/O (blocking; run in an executor)
    # ------------------------------------------------------------------

    def _read_store(self) -> dict[str, str]:
        """Read and decrypt the credentials file. Returns empty dict if missing or corrupt."""
        if not self._path.exists():
            return {}
        data = self._path.read_bytes()
        try:
            plaintext = self._decrypt(data)
            loaded = json.loads(plaintext)
        except CryptographicError as exc:
            logger.warning(
                "Credential file at %s could not be decrypted (%s); treating as empty",
                self._path, exc,
            )
            return {}
        except json.JSONDecodeError:
            logger.warning("Credential file at %s contained invalid JSON; treating as empty", self._path)
            return {}

        if not isinstance(loaded, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in loaded.items()
        ):
            logger.warning("Credential file at %s is not a key/secret map; treating as empty", self._path)
            return {}
        return loaded

    def _write_store(self, data: dict[str, str]) -> None:
        """Encrypt and atomically replace the credentials file."""
        plaintext = json.dumps(data, separators=(",", ":"))
        blob = self._encrypt(plaintext)

        ensure_configuration_directory(self._path.parent)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        tmp_path = pathlib.Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
                fh.flush()
                os.fsync(fh.fileno())
            restrict_permissions(tmp_path, _FILE_MODE)
            os.replace(tmp_path, self._path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("Credentials saved to %s", self._path)

    def _set_sync(self, key: str, secret: str) -> None:
        with self._lock:
            store = self._read_store()
            store[key] = secret
            self._write_store(store)

    def _delete_sync(self, key: str) -> None:
        with self._lock:
            store = self._read_store()
            if store.pop(key, None) is None:
                return
            self._write_store(store)

    async def _run(self, func: Callable[..., _T], *args: object) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    # ------------------------------------------------------------------
    # SecretStore
    # ------------------------------------------------------------------

    async def store(self, key: str, secret: str, label: str = "") -> bool:
        if is_blank(key) or is_blank(secret):
            logger.warning("store called with empty key or secret")
            return False
        try:
            await self._run(self._set_sync, key, secret)
        except (OSError, CryptographicError):
            logger.error("Error storing credential for key %s", key, exc_info=True)
            return False
        logger.debug("Credential stored for key %s", key)
        return True

    async def retrieve(self, key: str) -> str | None:
        if is_blank(key):
            logger.warning("retrieve called with empty key")
            return None
        store = await self._run(self._read_store)
        return store.get(key)

    async def delete(self, key: str) -> bool:
        if is_blank(key):
            logger.warning("delete called with empty key")
            return False
        try:
            await self._run(self._delete_sync, key)
        except (OSError, CryptographicError):
            logger.error("Error deleting credential for key %s", key, exc_info=True)
            return False
        return True

    async def exists(self, key: str) -> bool:
        if is_blank(key):
            return False
        try:
            store = await self._run(self._read_store)
        except OSError:
            logger.error("Error checking credential existence for key %s", key, exc_info=True)
            return False
        return key in store

    async def list_keys(self) -> set[str]:
        try:
            store = await self._run(self._read_store)
        except OSError:
            logger.error("Error listing credentials in %s", self._path, exc_info=True)
            return set()
        return set(store)
