"""
Key store implementation using pgpy.

Keeps keys in memory, keyed by fingerprint, and persists them as one armored
keyring file. Other PGP libraries can be plugged in by implementing the
KeyStore protocol instead.
"""

import re
import threading
from datetime import UTC, datetime
from pathlib import Path

import pgpy
import structlog

from macpgp.core.files import atomic_write, read_file
from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.exceptions import (
    FileAccessError,
    KeyDecryptionError,
    KeyExportError,
    KeyImportError,
    KeyNotFoundError,
    NoSecretKeyError,
    PersistenceError,
)
from macpgp.models.keys import KeyInfo

logger = structlog.get_logger(__name__)

_ARMORED_KEY_BLOCK = re.compile(
    rb"-----BEGIN PGP (PUBLIC|PRIVATE) KEY BLOCK-----.*?-----END PGP \1 KEY BLOCK-----",
    re.DOTALL,
)


def normalize_fingerprint(fingerprint: str) -> str:
    return fingerprint.replace(" ", "").upper()


class PgpyKeyStore:
    """
    Keyring backed by pgpy.

    Example:
        store = PgpyKeyStore(Path("~/.macpgp/keyring.asc").expanduser())
        store.load()
        armored = store.export_armored(fingerprint, include_secret=True)
    """

    def __init__(self, path: Path | None = None) -> None:
        """
        Args:
            path: Keyring file. None keeps the keyring in memory only.
        """
        self._path = path
        self._keys: dict[str, pgpy.PGPKey] = {}
        self._lock = threading.RLock()

    def load(self) -> int:
        """
        Load the keyring file, replacing keys held in memory.

        Returns:
            Number of keys loaded. A missing file loads nothing.

        Raises:
            PersistenceError: If the keyring file cannot be read or parsed.
        """
        if self._path is None or not self._path.exists():
            return 0
        try:
            data = read_file(self._path)
        except FileAccessError as e:
            raise PersistenceError(f"Failed to read keyring: {e.message}", path=e.path) from e

        parsed: list[pgpy.PGPKey] = []
        for block in _ARMORED_KEY_BLOCK.finditer(data):
            try:
                parsed.append(self._parse_block(block.group(0)))
            except KeyImportError as e:
                msg = f"Keyring file is corrupted: {e.message}"
                raise PersistenceError(msg, path=str(self._path)) from e

        with self._lock:
            self._keys.clear()
            for key in parsed:
                self._merge(key)
            count = len(self._keys)

        logger.debug("Keyring loaded", path=str(self._path), key_count=count)
        return count

    def keys(self) -> list[KeyInfo]:
        with self._lock:
            entries = list(self._keys.items())
        return [self._describe(fp, key) for fp, key in entries]

    def secret_keys(self) -> list[KeyInfo]:
        return [info for info in self.keys() if info.is_secret]

    def key(self, fingerprint: str) -> KeyInfo | None:
        fingerprint = normalize_fingerprint(fingerprint)
        key = self._keys.get(fingerprint)
        return self._describe(fingerprint, key) if key is not None else None

    def add_key(self, armored_key: str | bytes) -> KeyInfo:
        """
        Add a single armored key, e.g. one just generated.

        Raises:
            KeyImportError: If the key cannot be parsed.
        """
        blob = armored_key.encode("utf-8") if isinstance(armored_key, str) else armored_key
        key = self._parse_block(blob)
        with self._lock:
            fingerprint = self._merge(key) or self._fingerprint(key)
            stored = self._keys[fingerprint]
        return self._describe(fingerprint, stored)

    def export_armored(self, fingerprint: str, *, include_secret: bool) -> bytes:
        """
        Export a key as an armored block.

        Secret material is only included when requested and present.

        Raises:
            KeyNotFoundError: If the key is not in the store.
            KeyExportError: If serialization fails.
        """
        key = self._require(fingerprint)
        try:
            if include_secret or key.is_public:
                exported = key
            else:
                exported = key.pubkey
            return str(exported).encode("utf-8")
        except Exception as e:
            msg = f"Failed to export key: {e}"
            raise KeyExportError(msg, fingerprint=fingerprint) from e

    def import_armored(self, data: bytes) -> list[str]:
        """
        Import concatenated armored key blocks.

        Malformed blocks are skipped and logged. A secret key replaces a
        public-only copy of the same key; anything else already present is
        left as is and not reported.

        Returns:
            Fingerprints of added or upgraded keys, in input order.

        Raises:
            KeyImportError: If no block could be parsed.
        """
        blocks = [m.group(0) for m in _ARMORED_KEY_BLOCK.finditer(data)]
        if not blocks:
            msg = "No armored key blocks found"
            raise KeyImportError(msg)

        imported: list[str] = []
        parsed = 0
        for index, block in enumerate(blocks):
            try:
                key = self._parse_block(block)
            except KeyImportError as e:
                logger.warning("Skipping malformed key block", index=index, error=e.message)
                continue
            parsed += 1
            if (fingerprint := self._merge(key)) is not None:
                imported.append(fingerprint)

        if parsed == 0:
            msg = "None of the key blocks could be parsed"
            raise KeyImportError(msg, block_count=len(blocks))

        logger.info(
            "Keys imported", block_count=len(blocks), imported=len(imported), skipped=len(blocks) - parsed
        )
        return imported

    def persist(self) -> None:
        """
        Write the keyring file atomically.

        Saves are serialized with imports and loads, so a save always writes
        a consistent snapshot.

        Raises:
            PersistenceError: If the keyring cannot be written.
        """
        if self._path is None:
            return
        with self._lock:
            keys = list(self._keys.values())
            payload = "\n".join(str(key) for key in keys).encode("utf-8")
            try:
                atomic_write(self._path, payload)
            except FileAccessError as e:
                raise PersistenceError(f"Failed to save keyring: {e.message}", path=e.path) from e
        logger.debug("Keyring saved", path=str(self._path), key_count=len(keys))

    def decrypt_message(self, data: bytes, fingerprint: str, passphrase: SecureBytes) -> bytes:
        """
        Decrypt an armored or binary OpenPGP message with one secret key.

        Raises:
            KeyNotFoundError: If the key is not in the store.
            NoSecretKeyError: If the key is public only.
            KeyDecryptionError: If decryption fails.
        """
        key = self._require(fingerprint)
        if key.is_public:
            msg = f"Key has no secret material: {fingerprint}"
            raise NoSecretKeyError(msg)
        try:
            message = pgpy.PGPMessage.from_blob(data)
            with key.unlock(passphrase.decode()):
                decrypted = key.decrypt(message)
        except Exception as e:
            msg = f"Failed to decrypt message: {e}"
            raise KeyDecryptionError(msg, fingerprint=fingerprint) from e
        if not decrypted.is_encrypted and decrypted.message is not None:
            content = decrypted.message
            return bytes(content) if isinstance(content, (bytes, bytearray)) else content.encode("utf-8")
        msg = "Message was not encrypted to this key"
        raise KeyDecryptionError(msg, fingerprint=fingerprint)

    def _require(self, fingerprint: str) -> pgpy.PGPKey:
        key = self._keys.get(normalize_fingerprint(fingerprint))
        if key is None:
            msg = f"Key not found: {fingerprint}"
            raise KeyNotFoundError(msg, fingerprint=fingerprint)
        return key

    def _merge(self, key: pgpy.PGPKey) -> str | None:
        fingerprint = self._fingerprint(key)
        with self._lock:
            existing = self._keys.get(fingerprint)
            if existing is None or (existing.is_public and not key.is_public):
                self._keys[fingerprint] = key
                return fingerprint
        return None

    @staticmethod
    def _parse_block(block: bytes) -> pgpy.PGPKey:
        try:
            key, _ = pgpy.PGPKey.from_blob(block.decode("utf-8"))
        except Exception as e:
            msg = f"Failed to parse key: {e}"
            raise KeyImportError(msg) from e
        return key

    @staticmethod
    def _fingerprint(key: pgpy.PGPKey) -> str:
        return normalize_fingerprint(str(key.fingerprint))

    @staticmethod
    def _describe(fingerprint: str, key: pgpy.PGPKey) -> KeyInfo:
        user_ids = tuple(
            f"{uid.name} <{uid.email}>" if uid.email else uid.name
            for uid in key.userids
            if uid.name
        )
        return KeyInfo(
            fingerprint=fingerprint,
            user_ids=user_ids,
            is_secret=not key.is_public,
            created_at=_aware(key.created),
            expires_at=_aware(key.expires_at),
        )


def _aware(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
