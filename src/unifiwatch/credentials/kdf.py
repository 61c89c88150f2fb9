"""Key derivation for the AES fallback path.

The key is derived from the machine identity plus the current user and
host name, so a credentials file only decrypts for the same account on the
same machine. Nothing derived here is ever written to disk.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from unifiwatch.credentials.machine_id import MachineIdentity, machine_identity
from unifiwatch.host import current_hostname, current_username

KEY_LENGTH = 32  # AES-256
SALT_LENGTH = 32
MIN_ITERATIONS = 100_000


@dataclass(frozen=True)
class KeyContext:
    """Inputs that bind a derived key to one user on one machine."""

    machine_id: str
    username: str
    hostname: str

    @property
    def passphrase(self) -> str:
        return f"{self.machine_id}:{self.username}:{self.hostname}"

    @classmethod
    def current(cls, identity: MachineIdentity | None = None) -> KeyContext:
        """Build the context for this process's user and host."""
        identity = identity or machine_identity()
        return cls(
            machine_id=identity.get(),
            username=current_username(),
            hostname=current_hostname(),
        )


def new_salt() -> bytes:
    """Fresh random salt for one encryption."""
    return os.urandom(SALT_LENGTH)


def derive_key(context: KeyContext, salt: bytes, iterations: int = MIN_ITERATIONS) -> bytes:
    """Derive a 256-bit AES key via PBKDF2-HMAC-SHA256."""
    if iterations < MIN_ITERATIONS:
        raise ValueError(f"PBKDF2 iterations must be >= {MIN_ITERATIONS}")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(context.passphrase.encode("utf-8"))
