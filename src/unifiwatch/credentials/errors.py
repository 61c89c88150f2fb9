"""Exception types raised by the credential storage backends.

Only a few of these ever reach callers. Absent keys come back as ``None``
and blank input as ``False``. A corrupt credentials file is read as empty.
``PlatformUnsupportedError`` is the one meant to surface: it signals a
misconfigured storage method.
"""

from __future__ import annotations


class SecretStoreError(RuntimeError):
    """Base class for credential storage failures."""


class CryptographicError(SecretStoreError):
    """Stored data could not be encrypted or decrypted."""


class MalformedEnvelopeError(CryptographicError):
    """The on-disk bytes do not form a valid salt/IV/ciphertext envelope."""


class DecryptionError(CryptographicError):
    """The envelope parsed, but the derived key could not decrypt it."""


class DataProtectionError(CryptographicError):
    """The OS data-protection facility rejected the data."""


class PlatformUnsupportedError(SecretStoreError):
    """The requested storage method is not available on this host."""


class ExternalToolError(SecretStoreError):
    """A helper program (e.g. macOS ``security``) failed unexpectedly."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
