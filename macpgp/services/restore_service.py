"""
Backup restore service.

Restoring is driven step by step by the caller, because an encrypted backup
needs a passphrase before its contents can be read:

    IDLE -> FILE_SELECTED -> VALIDATED ---------------------> CONFIRMED -> COMPLETED
                          \\-> AWAITING_PASSPHRASE -> VALIDATED -/

A failed step leaves the service in the state it was in and records the error.
"""

import asyncio
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

import structlog

from macpgp.core import container as container_codec
from macpgp.core.files import read_file
from macpgp.crypto import cipher
from macpgp.crypto.protocol import KeyStore
from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.exceptions import (
    InvalidStateError,
    KeyImportError,
    MacPGPError,
    PersistenceError,
)
from macpgp.models.backup import BackupContainer, EncryptionType

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[float], None]


class RestoreState(StrEnum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    AWAITING_PASSPHRASE = "awaiting_passphrase"
    VALIDATED = "validated"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"


@dataclass(frozen=True, kw_only=True)
class RestorePreview:
    """
    What is known about a selected backup.

    For an encrypted backup the metadata is unreadable until the passphrase
    is supplied, so container is None and key_count is unknown.

    Attributes:
        path: Selected backup file.
        encryption: Encryption detected on the file.
        container: Parsed metadata, once readable.
    """

    path: Path
    encryption: EncryptionType
    container: BackupContainer | None = None

    @property
    def is_encrypted(self) -> bool:
        return self.encryption != EncryptionType.NONE

    @property
    def key_fingerprints(self) -> tuple[str, ...]:
        return self.container.key_fingerprints if self.container is not None else ()

    @property
    def key_count(self) -> int | None:
        return self.container.key_count if self.container is not None else None


@dataclass(frozen=True, kw_only=True)
class RestoreResult:
    """
    Attributes:
        imported_fingerprints: Keys the key store added or upgraded.
        expected_count: Keys listed in the backup.
    """

    imported_fingerprints: tuple[str, ...]
    expected_count: int

    @property
    def imported_count(self) -> int:
        return len(self.imported_fingerprints)

    @property
    def skipped_count(self) -> int:
        return max(self.expected_count - self.imported_count, 0)

    @property
    def is_partial(self) -> bool:
        return self.imported_count < self.expected_count


class RestoreService:
    """
    Service for validating backups and importing their keys.

    One instance handles one restore session at a time.
    """

    def __init__(self, key_store: KeyStore) -> None:
        """
        Args:
            key_store: Key store receiving the restored keys.
        """
        self._key_store = key_store
        self._state = RestoreState.IDLE
        self._path: Path | None = None
        self._raw: bytes | None = None
        self._plaintext: SecureBytes | None = None
        self._preview: RestorePreview | None = None
        self._result: RestoreResult | None = None
        self.last_error: MacPGPError | None = None

    @property
    def state(self) -> RestoreState:
        return self._state

    @property
    def preview(self) -> RestorePreview | None:
        return self._preview

    @property
    def result(self) -> RestoreResult | None:
        return self._result

    def select_file(self, path: Path) -> None:
        """
        Start a new session for a backup file. Any previous session is discarded.
        """
        self.reset()
        self._path = Path(path)
        self._transition(RestoreState.FILE_SELECTED)

    def validate(self) -> RestorePreview:
        """
        Read the selected file and detect whether it is encrypted.

        Plaintext backups are fully parsed and checksum-verified. Encrypted
        backups move to AWAITING_PASSPHRASE without parsing anything.

        Raises:
            InvalidStateError: If no file is selected.
            FileAccessError: If the file cannot be read.
            FormatError: If a plaintext backup is malformed.
            ChecksumMismatchError: If a plaintext backup's key data is corrupted.
        """
        self._require(RestoreState.FILE_SELECTED)
        with self._recording_errors():
            raw = read_file(self._path)
            if cipher.is_encrypted(raw):
                self._raw = raw
                self._preview = RestorePreview(path=self._path, encryption=EncryptionType.AES256_GCM)
                self._transition(RestoreState.AWAITING_PASSPHRASE)
                return self._preview

            decoded = container_codec.decode(raw)
            self._raw = raw
            self._plaintext = SecureBytes(raw)
            self._preview = RestorePreview(
                path=self._path, encryption=decoded.container.encryption, container=decoded.container
            )
            self._transition(RestoreState.VALIDATED)
            return self._preview

    def provide_passphrase(self, passphrase: str | SecureBytes) -> RestorePreview:
        """
        Decrypt an encrypted backup and parse its contents.

        The decrypted container is kept for the rest of the session so the key
        is derived only once.

        Raises:
            InvalidStateError: If no encrypted backup is awaiting a passphrase.
            PassphraseRequiredError: If the passphrase is empty.
            InvalidPassphraseError: If the passphrase is wrong or the file was tampered with.
            FormatError: If the decrypted content is malformed.
            ChecksumMismatchError: If the decrypted key data is corrupted.
        """
        self._require(RestoreState.AWAITING_PASSPHRASE)
        with self._recording_errors():
            plaintext = SecureBytes(cipher.decrypt(self._raw, passphrase))
            try:
                decoded = container_codec.decode(bytes(plaintext))
            except MacPGPError:
                plaintext.clear()
                raise
            self._plaintext = plaintext
            self._preview = RestorePreview(
                path=self._path, encryption=EncryptionType.AES256_GCM, container=decoded.container
            )
            self._transition(RestoreState.VALIDATED)
            return self._preview

    def confirm(self) -> None:
        """
        Confirm the validated backup should be restored.

        Raises:
            InvalidStateError: If no backup has been validated.
        """
        self._require(RestoreState.VALIDATED)
        self._transition(RestoreState.CONFIRMED)

    def restore(self, progress: ProgressCallback | None = None) -> RestoreResult:
        """
        Import the confirmed backup's keys and save the keyring.

        Args:
            progress: Receives 0.2, 0.4, 0.6, 0.8 and 1.0 as steps finish.

        Returns:
            Imported keys. Fewer keys than the backup lists is reported as a
            partial restore, not an error.

        Raises:
            InvalidStateError: If the restore has not been confirmed.
            KeyImportError: If the key store rejects the key data.
            PersistenceError: If the keyring cannot be saved.
        """
        self._require(RestoreState.CONFIRMED)
        with self._recording_errors():
            _report(progress, 0.2)
            data = bytes(self._plaintext)
            _report(progress, 0.4)
            decoded = container_codec.decode(data)
            _report(progress, 0.6)
            imported = self._import(decoded.key_data)
            _report(progress, 0.8)
            self._persist()
            _report(progress, 1.0)

        self._result = RestoreResult(
            imported_fingerprints=tuple(imported),
            expected_count=decoded.container.key_count,
        )
        if self._result.is_partial:
            logger.warning(
                "Backup partially restored",
                imported=self._result.imported_count,
                expected=self._result.expected_count,
            )
        else:
            logger.info("Backup restored", imported=self._result.imported_count)
        self._clear_cache()
        self._transition(RestoreState.COMPLETED)
        return self._result

    async def restore_async(self, progress: ProgressCallback | None = None) -> RestoreResult:
        """Run restore in a worker thread."""
        return await asyncio.to_thread(self.restore, progress)

    def reset(self) -> None:
        """Discard the current session and wipe any decrypted data."""
        self._clear_cache()
        self._path = None
        self._preview = None
        self._result = None
        self.last_error = None
        self._state = RestoreState.IDLE

    def _import(self, key_data: bytes) -> list[str]:
        try:
            return self._key_store.import_armored(key_data)
        except MacPGPError:
            raise
        except Exception as e:
            msg = f"Failed to import keys: {e}"
            raise KeyImportError(msg) from e

    def _persist(self) -> None:
        try:
            self._key_store.persist()
        except MacPGPError:
            raise
        except Exception as e:
            msg = f"Failed to save keyring: {e}"
            raise PersistenceError(msg) from e

    def _require(self, expected: RestoreState) -> None:
        if self._state == expected:
            return
        msg = f"Operation requires state {expected.value}"
        error = InvalidStateError(msg, state=self._state.value)
        self.last_error = error
        raise error

    def _transition(self, state: RestoreState) -> None:
        logger.debug("Restore state changed", previous=self._state.value, state=state.value)
        self._state = state
        self.last_error = None

    @contextmanager
    def _recording_errors(self) -> Iterator[None]:
        try:
            yield
        except MacPGPError as e:
            self.last_error = e
            logger.warning("Restore step failed", state=self._state.value, error_type=type(e).__name__)
            raise

    def _clear_cache(self) -> None:
        if self._plaintext is not None:
            self._plaintext.clear()
        self._plaintext = None
        self._raw = None


def _report(progress: ProgressCallback | None, value: float) -> None:
    if progress is not None:
        progress(value)
