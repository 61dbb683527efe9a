"""
Backup creation service.

Bundles selected keys into a container, optionally encrypts it, and writes it
atomically to disk.
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path

import structlog

from macpgp.config import MacPGPConfig
from macpgp.core import container as container_codec
from macpgp.core.files import atomic_write
from macpgp.crypto import cipher
from macpgp.crypto.protocol import KeyStore
from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.exceptions import (
    KeyExportError,
    KeyNotFoundError,
    MacPGPError,
    NoKeysSelectedError,
    PassphraseMismatchError,
    PassphraseRequiredError,
)
from macpgp.models.backup import BackupContainer, BackupMetadata, EncryptionType
from macpgp.models.keys import KeyInfo

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[float], None]
CompletionCallback = Callable[[datetime], None]


class BackupStage(StrEnum):
    """Backup stages, in execution order."""

    GATHER = "gather"
    EXPORT = "export"
    PACKAGE = "package"
    PROTECT = "protect"
    COMMIT = "commit"

    @property
    def progress(self) -> float:
        """Progress reported once this stage has finished."""
        return (list(BackupStage).index(self) + 1) / len(BackupStage)


@dataclass(frozen=True, kw_only=True)
class BackupRequest:
    """
    What to back up and how.

    Attributes:
        fingerprints: Keys to include, in output order.
        passphrase: Encrypt the backup with this passphrase. None writes a
            plaintext backup.
        confirm_passphrase: Confirmation entry; must equal passphrase when given.
        name: Optional backup name stored in the metadata.
        description: Optional description stored in the metadata.
    """

    fingerprints: Sequence[str]
    passphrase: str | SecureBytes | None = None
    confirm_passphrase: str | SecureBytes | None = None
    name: str | None = None
    description: str | None = None

    @property
    def encrypted(self) -> bool:
        return self.passphrase is not None


@dataclass(frozen=True, kw_only=True)
class BackupResult:
    """
    Attributes:
        path: File the backup was written to.
        container: Metadata embedded in the backup.
        size: Size of the written file in bytes.
        completed_at: When the backup was committed.
    """

    path: Path
    container: BackupContainer
    size: int
    completed_at: datetime

    @property
    def encrypted(self) -> bool:
        return self.container.is_encrypted

    @property
    def key_count(self) -> int:
        return self.container.key_count


class BackupService:
    """
    Service for creating backup files.

    All-or-nothing: either every requested key ends up in the file, or no
    file is written.
    """

    def __init__(
        self,
        key_store: KeyStore,
        config: MacPGPConfig | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        """
        Args:
            key_store: Key store holding the keys to back up.
            config: Identity and device details recorded in new backups.
            on_complete: Called with the completion time after a successful backup.
        """
        self._key_store = key_store
        self._config = config or MacPGPConfig()
        self._on_complete = on_complete

    def create_backup(
        self,
        request: BackupRequest,
        destination: Path,
        progress: ProgressCallback | None = None,
    ) -> BackupResult:
        """
        Create a backup file.

        Args:
            request: Keys and options.
            destination: Output path. Replaced atomically if it exists.
            progress: Receives 0.2, 0.4, 0.6, 0.8 and 1.0 as stages finish.

        Returns:
            Details of the written backup.

        Raises:
            NoKeysSelectedError: If no fingerprints were given.
            PassphraseRequiredError: If encryption was requested with an empty passphrase.
            PassphraseMismatchError: If the confirmation differs from the passphrase.
            KeyNotFoundError: If any fingerprint does not resolve.
            KeyExportError: If the key store cannot export a key.
            FileAccessError: If the file cannot be written.
        """
        destination = Path(destination)
        passphrase = self._validate(request)
        try:
            keys = self._gather(request.fingerprints)
            self._report(progress, BackupStage.GATHER)

            key_data = self._export(keys)
            self._report(progress, BackupStage.EXPORT)

            container = BackupContainer(
                key_fingerprints=tuple(k.fingerprint for k in keys),
                encryption=EncryptionType.NONE if passphrase is None else EncryptionType.AES256_GCM,
                created_by=self._config.created_by,
                metadata=BackupMetadata(
                    name=request.name or None,
                    description=request.description or None,
                    device_name=self._config.device_name,
                ),
            ).with_checksum(container_codec.compute_checksum(key_data))
            payload = container_codec.encode(container, key_data)
            self._report(progress, BackupStage.PACKAGE)

            if passphrase is not None:
                payload = cipher.encrypt(payload, passphrase).to_bytes()
            self._report(progress, BackupStage.PROTECT)

            atomic_write(destination, payload)
            self._report(progress, BackupStage.COMMIT)
        finally:
            if passphrase is not None and passphrase is not request.passphrase:
                passphrase.clear()

        completed_at = datetime.now(UTC)
        logger.info(
            "Backup created",
            path=str(destination),
            key_count=container.key_count,
            encrypted=container.is_encrypted,
        )
        if self._on_complete is not None:
            try:
                self._on_complete(completed_at)
            except MacPGPError as e:
                logger.warning("Backup completion hook failed", error_type=type(e).__name__, exc_info=e)

        return BackupResult(
            path=destination,
            container=container,
            size=len(payload),
            completed_at=completed_at,
        )

    async def create_backup_async(
        self,
        request: BackupRequest,
        destination: Path,
        progress: ProgressCallback | None = None,
    ) -> BackupResult:
        """Run create_backup in a worker thread."""
        return await asyncio.to_thread(self.create_backup, request, destination, progress)

    @staticmethod
    def _validate(request: BackupRequest) -> SecureBytes | None:
        if not request.fingerprints:
            raise NoKeysSelectedError()
        if not request.encrypted:
            return None

        passphrase = SecureBytes.coerce(request.passphrase)
        if not passphrase:
            raise PassphraseRequiredError()
        if request.confirm_passphrase is not None:
            confirmation = SecureBytes.coerce(request.confirm_passphrase)
            matches = passphrase == confirmation
            if confirmation is not request.confirm_passphrase:
                confirmation.clear()
            if not matches:
                if passphrase is not request.passphrase:
                    passphrase.clear()
                raise PassphraseMismatchError()
        return passphrase

    def _gather(self, fingerprints: Sequence[str]) -> list[KeyInfo]:
        resolved: dict[str, KeyInfo] = {}
        for fingerprint in fingerprints:
            key = self._key_store.key(fingerprint)
            if key is None:
                msg = f"Key not found: {fingerprint}"
                raise KeyNotFoundError(msg, fingerprint=fingerprint)
            resolved.setdefault(key.fingerprint, key)
        logger.debug("Keys gathered for backup", key_count=len(resolved))
        return list(resolved.values())

    def _export(self, keys: Sequence[KeyInfo]) -> bytes:
        blocks: list[bytes] = []
        for key in keys:
            try:
                blocks.append(self._key_store.export_armored(key.fingerprint, include_secret=True))
            except MacPGPError:
                raise
            except Exception as e:
                msg = f"Failed to export key: {e}"
                raise KeyExportError(msg, fingerprint=key.fingerprint) from e
        return b"".join(block + b"\n" for block in blocks)

    @staticmethod
    def _report(progress: ProgressCallback | None, stage: BackupStage) -> None:
        logger.debug("Backup stage finished", stage=stage.value)
        if progress is not None:
            progress(stage.progress)
