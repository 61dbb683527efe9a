"""
MacPGP backup client facade.

This is the main entry point for users of the library. It wires the key
store, credential vault and backup reminders into the backup, restore and
fallback decryption services.
"""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import structlog

from macpgp.config import MacPGPConfig
from macpgp.crypto.pgpy_keystore import PgpyKeyStore
from macpgp.crypto.protocol import CredentialVault, KeyStore
from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.services.backup_service import BackupRequest, BackupResult, BackupService, ProgressCallback
from macpgp.services.credential_vault import KeyringCredentialVault
from macpgp.services.fallback_decryptor import FallbackDecryptor, FallbackResult
from macpgp.services.reminder_service import BackupReminderService
from macpgp.services.restore_service import RestoreService

logger = structlog.get_logger(__name__)


class MacPGPClient:
    """
    High-level API for key backups.

    Example:
        ```python
        client = MacPGPClient()

        result = client.create_backup(
            [key.fingerprint for key in client.key_store.secret_keys()],
            passphrase="correct horse",
            confirm_passphrase="correct horse",
        )

        restore = client.start_restore(result.path)
        restore.provide_passphrase("correct horse")
        restore.confirm()
        print(restore.restore().imported_count)
        ```

    Args:
        config: Client configuration. Uses defaults if not provided.
        key_store: Key store to use. Defaults to a pgpy keyring at config.keyring_path.
        vault: Passphrase vault. Defaults to the OS keychain.
        reminders: Backup reminder tracker. Defaults to one built from config.
    """

    def __init__(
        self,
        config: MacPGPConfig | None = None,
        *,
        key_store: KeyStore | None = None,
        vault: CredentialVault | None = None,
        reminders: BackupReminderService | None = None,
    ) -> None:
        self._config = config or MacPGPConfig()

        if key_store is None:
            store = PgpyKeyStore(self._config.keyring_path)
            store.load()
            key_store = store
        self._key_store = key_store
        self._vault = vault if vault is not None else KeyringCredentialVault(self._config.keychain_service)
        self._reminders = reminders or BackupReminderService.from_config(self._config)

        self._backup_service = BackupService(
            self._key_store, self._config, on_complete=self._reminders.record_backup
        )
        self._fallback = FallbackDecryptor(self._key_store, self._vault)

    @property
    def config(self) -> MacPGPConfig:
        return self._config

    @property
    def key_store(self) -> KeyStore:
        return self._key_store

    @property
    def reminders(self) -> BackupReminderService:
        return self._reminders

    def default_backup_path(self, directory: Path | None = None, now: datetime | None = None) -> Path:
        """Timestamped backup file name, e.g. MacPGP-Backup-2024-05-01-093000.macpgp."""
        stamp = (now or datetime.now()).strftime("%Y-%m-%d-%H%M%S")
        return (directory or Path.cwd()) / f"MacPGP-Backup-{stamp}{self._config.backup_extension}"

    def create_backup(
        self,
        fingerprints: Sequence[str],
        destination: Path | None = None,
        *,
        passphrase: str | SecureBytes | None = None,
        confirm_passphrase: str | SecureBytes | None = None,
        name: str | None = None,
        description: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> BackupResult:
        """
        Back up keys to a file.

        Args:
            fingerprints: Keys to include.
            destination: Output file. Defaults to default_backup_path().
            passphrase: Encrypt with this passphrase. None writes a plaintext backup.
            confirm_passphrase: Must equal passphrase when given.
            name: Optional backup name.
            description: Optional backup description.
            progress: Receives stage progress from 0.2 to 1.0.
        """
        request = BackupRequest(
            fingerprints=fingerprints,
            passphrase=passphrase,
            confirm_passphrase=confirm_passphrase,
            name=name,
            description=description,
        )
        return self._backup_service.create_backup(
            request, destination or self.default_backup_path(), progress
        )

    async def create_backup_async(
        self,
        fingerprints: Sequence[str],
        destination: Path | None = None,
        *,
        passphrase: str | SecureBytes | None = None,
        confirm_passphrase: str | SecureBytes | None = None,
        name: str | None = None,
        description: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> BackupResult:
        """Async variant of create_backup; the work runs in a worker thread."""
        request = BackupRequest(
            fingerprints=fingerprints,
            passphrase=passphrase,
            confirm_passphrase=confirm_passphrase,
            name=name,
            description=description,
        )
        return await self._backup_service.create_backup_async(
            request, destination or self.default_backup_path(), progress
        )

    def start_restore(self, path: Path) -> RestoreService:
        """
        Open a backup for restoring and validate it.

        Returns:
            A restore session, either VALIDATED or AWAITING_PASSPHRASE.

        Raises:
            FileAccessError: If the file cannot be read.
            FormatError: If a plaintext backup is malformed.
            ChecksumMismatchError: If a plaintext backup is corrupted.
        """
        logger.debug("Starting restore session", path=str(path))
        session = RestoreService(self._key_store)
        session.select_file(path)
        session.validate()
        return session

    def decrypt(self, data: bytes) -> FallbackResult:
        """Decrypt a message with whichever local secret key can open it."""
        return self._fallback.decrypt(data)

    def decrypt_text(self, text: str) -> str:
        """Decrypt armored text, e.g. clipboard contents."""
        return self._fallback.decrypt_text(text)

    def is_backup_reminder_needed(self) -> bool:
        return self._reminders.is_reminder_needed()
