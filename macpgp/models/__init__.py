"""
Domain models for MacPGP backups.

These are immutable (frozen) dataclasses representing the core domain concepts.
"""

from macpgp.models.backup import (
    BackupContainer,
    BackupMetadata,
    BackupVersion,
    EncryptedEnvelope,
    EncryptionType,
)
from macpgp.models.keys import KeyInfo

__all__ = [
    # Backup
    "BackupVersion",
    "EncryptionType",
    "BackupMetadata",
    "BackupContainer",
    "EncryptedEnvelope",
    # Keys
    "KeyInfo",
]
