"""
MacPGP backup exception hierarchy.

All exceptions inherit from MacPGPError for easy catching. Each error class
carries a remediation hint that presentation layers can show next to the message.
"""

from typing import Any


class MacPGPError(Exception):
    """Base exception for all macpgp errors."""

    remediation: str | None = None

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class NoKeysSelectedError(MacPGPError):
    """Backup requested with an empty key selection."""

    remediation = "Select at least one key to back up."

    def __init__(self, message: str = "No keys selected for backup") -> None:
        super().__init__(message)


class KeyNotFoundError(MacPGPError):
    """A key identifier does not resolve in the key store."""

    remediation = "Import the required key or generate a new one."

    def __init__(self, message: str, *, fingerprint: str) -> None:
        super().__init__(message, fingerprint=fingerprint)
        self.fingerprint = fingerprint


class PassphraseRequiredError(MacPGPError):
    """An empty passphrase was supplied where one is required."""

    remediation = "Enter a passphrase to continue."

    def __init__(self, message: str = "Passphrase is required for this operation") -> None:
        super().__init__(message)


class PassphraseMismatchError(MacPGPError):
    """Passphrase and its confirmation differ."""

    remediation = "Re-enter the passphrase so both fields match."

    def __init__(self, message: str = "Passphrase confirmation does not match") -> None:
        super().__init__(message)


class FormatError(MacPGPError):
    """Backup file is not in a format this version understands."""

    remediation = "The file appears to be corrupted or is not a MacPGP backup."


class MalformedContainerError(FormatError):
    """Container markers or metadata are missing or unparseable."""


class UnsupportedVersionError(FormatError):
    """Container declares a schema version this version cannot read."""

    remediation = "Update the application to restore this backup."

    def __init__(self, message: str, *, version: str) -> None:
        super().__init__(message, version=version)
        self.version = version


class UnrecognizedFormatError(FormatError):
    """Encrypted payload does not start with the expected format marker."""


class EncodingError(FormatError):
    """Key data cannot be represented as UTF-8 text."""


class CryptoError(MacPGPError):
    """Cryptographic operation failed."""


class InvalidPassphraseError(CryptoError):
    """AEAD authentication failed, almost always a wrong passphrase."""

    remediation = "Re-enter the correct passphrase."

    def __init__(self, message: str = "Invalid passphrase") -> None:
        super().__init__(message)


class ChecksumMismatchError(CryptoError):
    """Key data does not match the checksum recorded in the container."""

    remediation = "The backup content is corrupted; restore from another copy."

    def __init__(self, message: str, *, expected: str, actual: str) -> None:
        super().__init__(message, expected=expected, actual=actual)
        self.expected = expected
        self.actual = actual


class KeyDecryptionError(CryptoError):
    """A message could not be decrypted with a specific key."""

    remediation = "Verify that you have the correct private key and passphrase."

    def __init__(self, message: str, *, fingerprint: str | None = None) -> None:
        super().__init__(message, fingerprint=fingerprint)
        self.fingerprint = fingerprint


class NoSecretKeyError(CryptoError):
    """The key store holds no secret keys to decrypt with."""

    remediation = "Import or generate a key pair first."

    def __init__(self, message: str = "No secret keys available for decryption") -> None:
        super().__init__(message)


class NoValidKeyError(CryptoError):
    """No candidate key could decrypt the data."""

    remediation = "Decrypt manually and enter the passphrase for the right key."

    def __init__(self, message: str, *, attempted: int = 0) -> None:
        super().__init__(message, attempted=attempted)
        self.attempted = attempted


class KeyStoreError(MacPGPError):
    """Key store operation failed."""


class KeyImportError(KeyStoreError):
    """Key store rejected imported key data."""

    remediation = "Check that the key data is a valid PGP key."


class KeyExportError(KeyStoreError):
    """Key store could not export a key."""

    remediation = "Check that the key is still present in the keyring."


class PersistenceError(KeyStoreError):
    """Key store could not save its state."""

    remediation = "Check file permissions and available disk space."


class FileAccessError(MacPGPError):
    """Reading or writing a file failed."""

    remediation = "Check that the file exists and you have permission to access it."

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message, path=path)
        self.path = path


class CredentialVaultError(MacPGPError):
    """Credential vault backend failed."""

    remediation = "Check keychain access permissions for this application."


class InvalidStateError(MacPGPError):
    """Operation is not valid in the current pipeline state."""

    def __init__(self, message: str, *, state: str) -> None:
        super().__init__(message, state=state)
        self.state = state
