"""
Business logic services for MacPGP backups.
"""

from macpgp.services.backup_service import BackupRequest, BackupResult, BackupService, BackupStage
from macpgp.services.credential_vault import InMemoryCredentialVault, KeyringCredentialVault
from macpgp.services.fallback_decryptor import FallbackDecryptor, FallbackResult
from macpgp.services.reminder_service import BackupReminderService
from macpgp.services.restore_service import RestorePreview, RestoreResult, RestoreService, RestoreState

__all__ = [
    "BackupService",
    "BackupRequest",
    "BackupResult",
    "BackupStage",
    "RestoreService",
    "RestoreState",
    "RestorePreview",
    "RestoreResult",
    "FallbackDecryptor",
    "FallbackResult",
    "InMemoryCredentialVault",
    "KeyringCredentialVault",
    "BackupReminderService",
]
