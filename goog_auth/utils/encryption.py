"""AES-256-GCM encryption and key derivation for the credential file store.

This module provides the cryptographic primitives used by the encrypted-file
fallback of the secure store. GCM mode provides both confidentiality and
integrity protection, so a wrong key or a tampered blob is always rejected
instead of yielding corrupted plaintext.

Sealed blob layout: ``nonce (12 bytes) || ciphertext || tag (16 bytes)``.

Security considerations:
- Keys must be 256 bits (32 bytes) for AES-256
- Nonces are 96 bits (12 bytes) and freshly generated for every encryption
- Never reuse a nonce with the same key
- Keys for new data are stretched with PBKDF2-HMAC-SHA256 and a random salt
"""

from __future__ import annotations

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from goog_auth.utils.errors import DecryptionError, ValidationError

# Constants
KEY_SIZE_BITS = 256
KEY_SIZE_BYTES = KEY_SIZE_BITS // 8  # 32 bytes
NONCE_SIZE_BYTES = 12  # 96 bits, recommended for GCM
SALT_SIZE_BYTES = 32
PBKDF2_ITERATIONS = 100_000


def generate_key() -> bytes:
    """Generate a cryptographically secure 256-bit encryption key.

    Returns:
        A 32-byte (256-bit) key suitable for AES-256-GCM encryption.
    """
    return AESGCM.generate_key(bit_length=KEY_SIZE_BITS)


def generate_salt() -> bytes:
    """Generate a fresh random salt for key derivation.

    Returns:
        ``SALT_SIZE_BYTES`` random bytes from the OS CSPRNG.
    """
    return os.urandom(SALT_SIZE_BYTES)


def derive_key(
    secret: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS
) -> bytes:
    """Derive an AES-256 key from a secret string with PBKDF2-HMAC-SHA256.

    Args:
        secret: Key material (for the file store: application tag, account
            and machine fingerprint joined together).
        salt: Random salt, stored next to the ciphertext.
        iterations: PBKDF2 iteration count. Values below
            ``PBKDF2_ITERATIONS`` are rejected.

    Returns:
        A 32-byte key.

    Raises:
        ValidationError: If the salt is empty or the iteration count is
            below the minimum.

    Example:
        >>> key = derive_key("app:alice:host", generate_salt())
        >>> len(key)
        32
    """
    if not salt:
        raise ValidationError("Salt must not be empty", field="salt")
    if iterations < PBKDF2_ITERATIONS:
        raise ValidationError(
            f"PBKDF2 iterations must be at least {PBKDF2_ITERATIONS}",
            field="iterations",
            details={"minimum": PBKDF2_ITERATIONS, "actual": iterations},
        )

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE_BYTES,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret.encode("utf-8"))


def derive_legacy_key(secret: str) -> bytes:
    """Derive a key with a single unsalted SHA-256.

    Only used to read files written by the old storage format. Never use
    this for new data.

    Args:
        secret: Key material of the legacy format.

    Returns:
        A 32-byte key.
    """
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt_data(plaintext: bytes, key: bytes) -> bytes:
    """Encrypt data using AES-256-GCM authenticated encryption.

    A unique 12-byte nonce is generated for each call and prefixed to the
    returned blob, so encrypting the same plaintext twice never produces the
    same output.

    Args:
        plaintext: The data to encrypt.
        key: A 32-byte (256-bit) encryption key.

    Returns:
        The sealed blob: nonce followed by ciphertext and authentication tag.

    Raises:
        ValidationError: If the key is not exactly 32 bytes.

    Example:
        >>> key = generate_key()
        >>> sealed = encrypt_data(b"secret token data", key)
        >>> decrypt_data(sealed, key)
        b'secret token data'
    """
    _validate_key(key)

    nonce = os.urandom(NONCE_SIZE_BYTES)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt_data(sealed: bytes, key: bytes) -> bytes:
    """Decrypt a blob produced by :func:`encrypt_data`.

    Decrypts and verifies the authentication tag in a single operation.

    Args:
        sealed: Nonce-prefixed ciphertext with authentication tag.
        key: The 32-byte (256-bit) key used for encryption.

    Returns:
        The decrypted plaintext data.

    Raises:
        ValidationError: If the key has an invalid length.
        DecryptionError: If the blob is too short, was tampered with, or the
            key is wrong.
    """
    _validate_key(key)

    if len(sealed) < NONCE_SIZE_BYTES:
        raise DecryptionError(
            "Failed to decrypt data - ciphertext too short",
            details={"length": len(sealed)},
        )

    nonce, ciphertext = sealed[:NONCE_SIZE_BYTES], sealed[NONCE_SIZE_BYTES:]
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError(
            "Failed to decrypt data - invalid key or corrupted ciphertext",
            details={"error_type": type(e).__name__},
        ) from e


def _validate_key(key: bytes) -> None:
    """Validate that the key is the correct length for AES-256.

    Args:
        key: The encryption key to validate.

    Raises:
        ValidationError: If the key is not exactly 32 bytes.
    """
    if len(key) != KEY_SIZE_BYTES:
        raise ValidationError(
            f"Invalid key length: expected {KEY_SIZE_BYTES} bytes, got {len(key)}",
            field="key",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )


__all__ = [
    "KEY_SIZE_BYTES",
    "NONCE_SIZE_BYTES",
    "SALT_SIZE_BYTES",
    "PBKDF2_ITERATIONS",
    "generate_key",
    "generate_salt",
    "derive_key",
    "derive_legacy_key",
    "encrypt_data",
    "decrypt_data",
]
