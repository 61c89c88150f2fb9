"""Binary envelope for the AES fallback path.

Layout (no version byte)::

    [salt_len:u8][salt][iv_len:u8][iv][ciphertext...]

``salt_len`` must be in 1..64, ``iv_len`` must be 16 (the AES block size),
and at least one ciphertext byte must follow. The file on disk is
untrusted, so every field is bounds-checked before it is read.
"""

from __future__ import annotations

from dataclasses import dataclass

from unifiwatch.credentials.errors import MalformedEnvelopeError

MAX_SALT_LENGTH = 64
IV_LENGTH = 16


@dataclass(frozen=True)
class Envelope:
    """Salt, IV and ciphertext of one encrypted credential map."""

    salt: bytes
    iv: bytes
    ciphertext: bytes

    def __post_init__(self) -> None:
        if not 0 < len(self.salt) <= MAX_SALT_LENGTH:
            raise MalformedEnvelopeError(
                f"invalid salt length {len(self.salt)} (expected 1..{MAX_SALT_LENGTH})"
            )
        if len(self.iv) != IV_LENGTH:
            raise MalformedEnvelopeError(
                f"invalid IV length {len(self.iv)} (expected {IV_LENGTH})"
            )
        if not self.ciphertext:
            raise MalformedEnvelopeError("envelope contains no ciphertext")

    def encode(self) -> bytes:
        """Serialize to the length-prefixed on-disk layout."""
        return b"".join((
            bytes([len(self.salt)]),
            self.salt,
            bytes([len(self.iv)]),
            self.iv,
            self.ciphertext,
        ))

    @classmethod
    def decode(cls, data: bytes) -> Envelope:
        """Parse *data*, raising :class:`MalformedEnvelopeError` on any violation."""
        view = memoryview(data)
        pos = 0

        if len(view) < 1:
            raise MalformedEnvelopeError("envelope is empty")
        salt_len = view[pos]
        pos += 1
        if not 0 < salt_len <= MAX_SALT_LENGTH:
            raise MalformedEnvelopeError(f"invalid salt length {salt_len}")
        if len(view) - pos < salt_len:
            raise MalformedEnvelopeError("envelope truncated inside salt")
        salt = bytes(view[pos:pos + salt_len])
        pos += salt_len

        if len(view) - pos < 1:
            raise MalformedEnvelopeError("envelope truncated before IV length")
        iv_len = view[pos]
        pos += 1
        if iv_len != IV_LENGTH:
            raise MalformedEnvelopeError(f"invalid IV length {iv_len}")
        if len(view) - pos < iv_len:
            raise MalformedEnvelopeError("envelope truncated inside IV")
        iv = bytes(view[pos:pos + iv_len])
        pos += iv_len

        if len(view) - pos < 1:
            raise MalformedEnvelopeError("envelope contains no ciphertext")
        return cls(salt=salt, iv=iv, ciphertext=bytes(view[pos:]))
