"""AES-256-CBC fallback encryption wrapped in an :class:`Envelope`.

Used wherever the OS offers no data-protection facility, and to read files
written by such a host. There is no MAC: a wrong key is detected only
through bad padding or undecodable text, and both raise
:class:`DecryptionError`.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from unifiwatch.credentials.envelope import IV_LENGTH, Envelope
from unifiwatch.credentials.errors import DecryptionError
from unifiwatch.credentials.kdf import MIN_ITERATIONS, KeyContext, derive_key, new_salt

# Appended before encryption and removed after, so the block cipher never
# sees a zero-length plaintext.
_GUARD = b"\n"


def encrypt_envelope(
    plaintext: str,
    context: KeyContext,
    iterations: int = MIN_ITERATIONS,
) -> bytes:
    """Encrypt *plaintext* under a freshly salted key and return envelope bytes."""
    salt = new_salt()
    iv = os.urandom(IV_LENGTH)
    key = derive_key(context, salt, iterations)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8") + _GUARD) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return Envelope(salt=salt, iv=iv, ciphertext=ciphertext).encode()


def decrypt_envelope(
    data: bytes,
    context: KeyContext,
    iterations: int = MIN_ITERATIONS,
) -> str:
    """Decrypt envelope bytes produced by :func:`encrypt_envelope`.

    Raises
    ------
    MalformedEnvelopeError
        If *data* is not a well-formed envelope.
    DecryptionError
        If the key does not match or the plaintext is not valid UTF-8.
    """
    envelope = Envelope.decode(data)
    if len(envelope.ciphertext) % IV_LENGTH:
        raise DecryptionError("ciphertext is not a whole number of AES blocks")

    key = derive_key(context, envelope.salt, iterations)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(envelope.iv)).decryptor()
    padded = decryptor.update(envelope.ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        raw = unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionError("invalid padding (wrong key or corrupt data)") from exc

    if raw.endswith(_GUARD):
        raw = raw[: -len(_GUARD)]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("decrypted data is not valid UTF-8") from exc
