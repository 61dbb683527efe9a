"""
Key store and credential vault protocol definitions.

The backup engine only talks to these interfaces, so the PGP library behind the
key store and the secret storage behind the vault can be swapped without
touching the pipelines.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.models.keys import KeyInfo


@runtime_checkable
class KeyStore(Protocol):
    """
    Abstract interface for the keyring holding the user's keys.

    Implementations must propagate failures as distinct errors and must not
    retry internally.
    """

    def key(self, fingerprint: str) -> KeyInfo | None:
        """
        Look up a key by fingerprint.

        Returns:
            The key, or None if the fingerprint does not resolve.
        """
        ...

    def secret_keys(self) -> Sequence[KeyInfo]:
        """Return all keys with secret material, in keyring order."""
        ...

    def export_armored(self, fingerprint: str, *, include_secret: bool) -> bytes:
        """
        Export a key as an ASCII-armored block.

        Args:
            fingerprint: Key to export.
            include_secret: Include secret material when the key has it.

        Raises:
            KeyNotFoundError: If the key is not in the store.
            KeyExportError: If the key cannot be serialized.
        """
        ...

    def import_armored(self, data: bytes) -> list[str]:
        """
        Import one or more concatenated armored key blocks.

        Returns:
            Fingerprints of keys that were added or upgraded. Malformed blocks
            and keys already present are not counted.

        Raises:
            KeyImportError: If the data contains no usable key at all.
        """
        ...

    def persist(self) -> None:
        """
        Save the keyring.

        Raises:
            PersistenceError: If the keyring cannot be written.
        """
        ...

    def decrypt_message(self, data: bytes, fingerprint: str, passphrase: SecureBytes) -> bytes:
        """
        Decrypt an OpenPGP message with one secret key.

        Raises:
            KeyNotFoundError: If the key is not in the store.
            NoSecretKeyError: If the key has no secret material.
            KeyDecryptionError: If decryption fails for any reason.
        """
        ...


@runtime_checkable
class CredentialVault(Protocol):
    """Passphrase cache keyed by key identifier. Never prompts."""

    def lookup(self, key_id: str) -> SecureBytes | None:
        """
        Return the cached passphrase for a key, or None when nothing is stored.

        Raises:
            CredentialVaultError: If the vault backend fails.
        """
        ...
