"""Abstract interface for credential storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum


class StorageMethod(StrEnum):
    """Machine-readable identifiers for every storage backend."""

    AUTO = "auto"
    WINDOWS_CREDENTIAL_MANAGER = "windows-credential-manager"
    MACOS_KEYCHAIN = "macos-keychain"
    LINUX_SECRET_SERVICE = "linux-secret-service"
    ENCRYPTED_FILE = "encrypted-file"
    ENVIRONMENT_VARIABLES = "environment-variables"


@dataclass(frozen=True)
class CredentialRecord:
    """A single stored credential.

    ``secret`` is opaque to the store; callers may pack structured values
    into it (e.g. ``"username:password"``). ``label`` is a display hint only.
    """

    key: str
    secret: str
    label: str = ""


def is_blank(value: str | None) -> bool:
    """Return True for ``None``, empty, or whitespace-only strings."""
    return value is None or not value.strip()


class SecretStore(ABC):
    """Abstract credential store. Implementations provide platform-specific storage.

    All methods are async: every backend does file I/O, spawns a
    subprocess, or calls into the OS, and callers may be concurrent.

    Absent keys are reported as ``None`` / ``False``, never as exceptions.
    Blank keys or secrets make ``store`` return ``False``.
    """

    @property
    @abstractmethod
    def storage_method(self) -> StorageMethod:
        """Stable identifier of this backend (e.g. ``encrypted-file``)."""

    @property
    @abstractmethod
    def storage_method_description(self) -> str:
        """Human-readable description of this backend."""

    @abstractmethod
    async def store(self, key: str, secret: str, label: str = "") -> bool:
        """Store or overwrite a secret. Returns False on blank input or failure."""

    @abstractmethod
    async def retrieve(self, key: str) -> str | None:
        """Retrieve a secret by key. Returns None if not found."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a secret. Returns True if removed or already absent."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True if a secret is stored under *key*."""

    @abstractmethod
    async def list_keys(self) -> set[str]:
        """Return the keys of all stored secrets (never the secrets)."""

    async def store_record(self, record: CredentialRecord) -> bool:
        """Store a :class:`CredentialRecord`."""
        return await self.store(record.key, record.secret, record.label)
