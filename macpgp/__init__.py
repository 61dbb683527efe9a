"""
MacPGP key backup engine.

Bundles OpenPGP keys into a portable backup file, optionally protected with a
passphrase, and restores them through a validated multi-step session.

Example:
    ```python
    from macpgp import MacPGPClient

    client = MacPGPClient()

    # Back up every secret key
    fingerprints = [key.fingerprint for key in client.key_store.secret_keys()]
    result = client.create_backup(fingerprints, passphrase="hunter2", confirm_passphrase="hunter2")

    # Restore it
    session = client.start_restore(result.path)
    session.provide_passphrase("hunter2")
    session.confirm()
    session.restore()
    ```
"""

from macpgp.client import MacPGPClient
from macpgp.config import MacPGPConfig
from macpgp.exceptions import (
    ChecksumMismatchError,
    CredentialVaultError,
    CryptoError,
    EncodingError,
    FileAccessError,
    FormatError,
    InvalidPassphraseError,
    InvalidStateError,
    KeyDecryptionError,
    KeyExportError,
    KeyImportError,
    KeyNotFoundError,
    KeyStoreError,
    MacPGPError,
    MalformedContainerError,
    NoKeysSelectedError,
    NoSecretKeyError,
    NoValidKeyError,
    PassphraseMismatchError,
    PassphraseRequiredError,
    PersistenceError,
    UnrecognizedFormatError,
    UnsupportedVersionError,
)
from macpgp.models.backup import BackupContainer, BackupMetadata, EncryptionType
from macpgp.models.keys import KeyInfo
from macpgp.services.restore_service import RestoreState

__version__ = "0.1.0"

__all__ = [
    # Main client
    "MacPGPClient",
    "MacPGPConfig",
    # Models
    "BackupContainer",
    "BackupMetadata",
    "EncryptionType",
    "KeyInfo",
    "RestoreState",
    # Exceptions
    "MacPGPError",
    "NoKeysSelectedError",
    "KeyNotFoundError",
    "PassphraseRequiredError",
    "PassphraseMismatchError",
    "FormatError",
    "MalformedContainerError",
    "UnsupportedVersionError",
    "UnrecognizedFormatError",
    "EncodingError",
    "CryptoError",
    "InvalidPassphraseError",
    "ChecksumMismatchError",
    "KeyDecryptionError",
    "NoSecretKeyError",
    "NoValidKeyError",
    "KeyStoreError",
    "KeyImportError",
    "KeyExportError",
    "PersistenceError",
    "FileAccessError",
    "CredentialVaultError",
    "InvalidStateError",
]
