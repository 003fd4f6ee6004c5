"""Encrypted file fallback for the secure store.

Used when no OS credential vault is available. Each account gets one file:

    <config_dir>/tokens/<account>.enc

File format (JSON envelope)::

    {"salt": "<base64, 32 bytes>", "ciphertext": "<base64 nonce||sealed>"}

The decrypted payload is ``{"tokens": {"<key>": "<base64 value>", ...}}``.

Key derivation: PBKDF2-HMAC-SHA256 (100,000 iterations) over
``goog-auth-file-store:<account>:<machine fingerprint>`` with the salt from
the envelope. Every save writes a brand-new salt.

Security considerations:
- The machine fingerprint (hostname, user name, uid) binds files to this
  host and user; a copied file does not decrypt elsewhere. It is not a
  substitute for disk encryption on a compromised host.
- Files are written atomically with 0600 permissions.
- Files from the older unsalted format (raw ciphertext, key =
  SHA-256 of ``goog-auth-file-store:<account>``) are still readable. They are
  replaced by the salted format on the next save and never written again.
"""

from __future__ import annotations

import base64
import binascii
import contextlib
import getpass
import json
import logging
import os
import socket
import tempfile
import threading
from pathlib import Path

from goog_auth.config import default_config_dir
from goog_auth.storage.base import SecureStore
from goog_auth.utils.encryption import (
    SALT_SIZE_BYTES,
    decrypt_data,
    derive_key,
    derive_legacy_key,
    encrypt_data,
    generate_salt,
)
from goog_auth.utils.errors import (
    DecryptionError,
    KeyNotFoundError,
    StorageError,
    StoreReadError,
    ValidationError,
)

logger = logging.getLogger(__name__)

FILE_STORE_TAG = "goog-auth-file-store"
FILE_SUFFIX = ".enc"


def machine_fingerprint() -> str:
    """Return a string identifying this host and OS user.

    Combines hostname, user name and numeric uid (where the platform has
    one). Components that cannot be determined are skipped.
    """
    components: list[str] = []

    hostname = socket.gethostname()
    if hostname:
        components.append(hostname)

    try:
        username = getpass.getuser()
    except (OSError, KeyError):
        username = ""
    if username:
        components.append(username)

    if hasattr(os, "getuid"):
        components.append(str(os.getuid()))

    return ":".join(components)


class FileStore(SecureStore):
    """File-based encrypted secret storage.

    Attributes:
        _tokens_dir: Directory where encrypted account files are stored.

    Example:
        >>> store = FileStore(Path("/tmp/goog"))
        >>> store.set("work", "token", b"secret")
        >>> store.get("work", "token")
        b'secret'
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        """Initialize the file store.

        Args:
            base_dir: Application config directory. Files go to its
                ``tokens/`` subdirectory. Defaults to ``default_config_dir()``.

        Raises:
            StorageError: If the tokens directory cannot be created.
        """
        if base_dir is None:
            base_dir = default_config_dir()

        self._tokens_dir = Path(base_dir) / "tokens"
        try:
            self._tokens_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to create tokens directory: {e}",
                details={"path": str(self._tokens_dir)},
            ) from e

        # Serializes read-modify-write cycles within this process
        self._lock = threading.Lock()
        logger.debug("FileStore initialized at %s", self._tokens_dir)

    def token_path(self, account: str) -> Path:
        """Get the file path for an account's encrypted secrets.

        Args:
            account: Account identifier.

        Returns:
            Path to the account's encrypted file.

        Raises:
            ValidationError: If the account name could escape the tokens
                directory.
        """
        if (
            not account
            or account in (".", "..")
            or "/" in account
            or "\\" in account
            or "\x00" in account
        ):
            raise ValidationError(
                "Invalid account name for file storage",
                field="account",
                details={"account": account[:50]},
            )
        return self._tokens_dir / f"{account}{FILE_SUFFIX}"

    # =========================================================================
    # SecureStore operations
    # =========================================================================

    def set(self, account: str, key: str, value: bytes) -> None:
        with self._lock:
            records = self._load(account) or {}
            records[key] = bytes(value)
            self._save(account, records)
        logger.debug("Stored %s for account %s in encrypted file", key, account)

    def get(self, account: str, key: str) -> bytes:
        records = self._load(account)
        if records is None or key not in records:
            raise KeyNotFoundError(
                "Key not found", details={"account": account, "key": key}
            )
        return records[key]

    def delete(self, account: str, key: str) -> None:
        """Remove ``key`` for ``account``.

        An account file that cannot be decrypted is removed as a whole, since
        none of its other keys are recoverable either.
        """
        with self._lock:
            try:
                records = self._load(account)
            except StoreReadError as e:
                logger.warning(
                    "Removing unreadable credential file for account %s: %s",
                    account,
                    e.message,
                )
                records = {}
            if records is None:
                return

            records.pop(key, None)
            if records:
                self._save(account, records)
                return

            path = self.token_path(account)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(
                    f"Failed to delete credential file: {e}",
                    details={"account": account, "path": str(path)},
                ) from e
            logger.info("Removed credential file for account %s", account)

    def list(self, account: str) -> list[str]:
        records = self._load(account)
        if records is None:
            return []
        return list(records)

    # =========================================================================
    # Key derivation
    # =========================================================================

    def _derive_key(self, account: str, salt: bytes) -> bytes:
        return derive_key(f"{FILE_STORE_TAG}:{account}:{machine_fingerprint()}", salt)

    def _derive_legacy_key(self, account: str) -> bytes:
        return derive_legacy_key(f"{FILE_STORE_TAG}:{account}")

    # =========================================================================
    # File format
    # =========================================================================

    def _load(self, account: str) -> dict[str, bytes] | None:
        """Read and decrypt an account file.

        Returns:
            The key/value map, or None if the account has no file.

        Raises:
            StoreReadError: If the file exists but cannot be decrypted or
                parsed.
        """
        path = self.token_path(account)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreReadError(
                f"Cannot read credential store: {e}",
                details={"account": account, "path": str(path)},
            ) from e

        try:
            envelope = json.loads(raw)
        except ValueError:
            # Not JSON: the old raw-ciphertext format
            return self._load_legacy(account, raw)

        salt, ciphertext = self._parse_envelope(account, envelope)
        try:
            plaintext = decrypt_data(ciphertext, self._derive_key(account, salt))
        except DecryptionError as e:
            raise StoreReadError(
                "Cannot read credential store: decryption failed",
                details={"account": account, "path": str(path)},
            ) from e

        return self._decode_payload(account, plaintext)

    def _load_legacy(self, account: str, raw: bytes) -> dict[str, bytes]:
        try:
            plaintext = decrypt_data(raw, self._derive_legacy_key(account))
        except DecryptionError as e:
            raise StoreReadError(
                "Cannot read credential store: decryption failed",
                details={"account": account, "format": "legacy"},
            ) from e

        logger.warning(
            "Read legacy-format credential file for account %s; "
            "it will be re-encrypted on the next save",
            account,
        )
        return self._decode_payload(account, plaintext)

    def _parse_envelope(self, account: str, envelope: object) -> tuple[bytes, bytes]:
        if not isinstance(envelope, dict):
            raise StoreReadError(
                "Cannot read credential store: invalid file envelope",
                details={"account": account},
            )
        try:
            salt = base64.b64decode(envelope["salt"], validate=True)
            ciphertext = base64.b64decode(envelope["ciphertext"], validate=True)
        except (KeyError, TypeError, binascii.Error, ValueError) as e:
            raise StoreReadError(
                "Cannot read credential store: invalid file envelope",
                details={"account": account, "error_type": type(e).__name__},
            ) from e

        if len(salt) != SALT_SIZE_BYTES:
            raise StoreReadError(
                "Cannot read credential store: invalid salt",
                details={"account": account, "salt_length": len(salt)},
            )
        return salt, ciphertext

    def _decode_payload(self, account: str, plaintext: bytes) -> dict[str, bytes]:
        try:
            payload = json.loads(plaintext)
            tokens = payload.get("tokens") or {}
            return {
                str(name): base64.b64decode(value, validate=True)
                for name, value in tokens.items()
            }
        except (ValueError, AttributeError, TypeError, binascii.Error) as e:
            raise StoreReadError(
                "Cannot read credential store: invalid payload",
                details={"account": account, "error_type": type(e).__name__},
            ) from e

    def _save(self, account: str, records: dict[str, bytes]) -> None:
        """Encrypt ``records`` with a fresh salt and atomically replace the file."""
        payload = {
            "tokens": {
                name: base64.b64encode(value).decode("ascii")
                for name, value in records.items()
            }
        }
        plaintext = json.dumps(payload).encode("utf-8")

        salt = generate_salt()
        sealed = encrypt_data(plaintext, self._derive_key(account, salt))
        envelope = {
            "salt": base64.b64encode(salt).decode("ascii"),
            "ciphertext": base64.b64encode(sealed).decode("ascii"),
        }

        path = self.token_path(account)
        try:
            _atomic_write(path, json.dumps(envelope).encode("utf-8"))
        except OSError as e:
            logger.error("Failed to write credential file for %s: %s", account, e)
            raise StorageError(
                f"Failed to write credential file: {e}",
                details={"account": account, "path": str(path)},
            ) from e


def _atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers see either the old or new file."""
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


__all__ = [
    "FileStore",
    "machine_fingerprint",
    "FILE_STORE_TAG",
]
