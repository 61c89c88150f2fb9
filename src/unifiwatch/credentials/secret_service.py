"""Linux Secret Service backend.

Reports itself as ``linux-secret-service`` so configuration and callers
see the platform-native choice, but does not yet speak the D-Bus Secret
Service protocol: every operation is delegated to an
:class:`EncryptedFileStore` under the user's configuration directory.
"""

from __future__ import annotations

import logging
import pathlib

from unifiwatch.credentials.encrypted_file import EncryptedFileStore
from unifiwatch.credentials.kdf import MIN_ITERATIONS
from unifiwatch.credentials.machine_id import MachineIdentity
from unifiwatch.credentials.store import SecretStore, StorageMethod
from unifiwatch.host import HostPlatform, configuration_directory

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "credentials.enc"


class LinuxSecretServiceStore(SecretStore):
    """Secret Service facade backed by the encrypted-file store.

    Parameters
    ----------
    file_path:
        Location of the backing encrypted file. Defaults to
        ``~/.config/unifiwatch/credentials.enc``.
    identity:
        Machine identity for the backing store's key derivation.
    iterations:
        PBKDF2 iteration count for the backing store.
    """

    def __init__(
        self,
        file_path: pathlib.Path | None = None,
        identity: MachineIdentity | None = None,
        iterations: int = MIN_ITERATIONS,
    ) -> None:
        if file_path is None:
            file_path = configuration_directory(HostPlatform.LINUX) / DEFAULT_FILE_NAME
        self._fallback = EncryptedFileStore(
            file_path=file_path,
            identity=identity,
            protector=None,
            iterations=iterations,
        )
        logger.warning(
            "Secret Service integration is not available; credentials are kept in "
            "the encrypted file %s. Consider GNOME Keyring or KDE Wallet once supported.",
            file_path,
        )

    @property
    def storage_method(self) -> StorageMethod:
        return StorageMethod.LINUX_SECRET_SERVICE

    @property
    def storage_method_description(self) -> str:
        return "Linux Secret Service (GNOME Keyring, KDE Wallet, or pass)"

    @property
    def file_path(self) -> pathlib.Path:
        return self._fallback.file_path

    async def store(self, key: str, secret: str, label: str = "") -> bool:
        return await self._fallback.store(key, secret, label)

    async def retrieve(self, key: str) -> str | None:
        return await self._fallback.retrieve(key)

    async def delete(self, key: str) -> bool:
        return await self._fallback.delete(key)

    async def exists(self, key: str) -> bool:
        return await self._fallback.exists(key)

    async def list_keys(self) -> set[str]:
        return await self._fallback.list_keys()
