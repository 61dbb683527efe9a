"""
Passphrase vaults.

Both vaults satisfy the CredentialVault protocol: lookups are pure and never
prompt the user.
"""

import keyring
import structlog
from keyring.errors import KeyringError, PasswordDeleteError

from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.exceptions import CredentialVaultError

logger = structlog.get_logger(__name__)


class InMemoryCredentialVault:
    """
    Process-local passphrase cache.

    Returned passphrases are owned by the vault; callers must not clear them.
    """

    def __init__(self) -> None:
        self._passphrases: dict[str, SecureBytes] = {}

    def store(self, key_id: str, passphrase: str | SecureBytes) -> None:
        self.delete(key_id)
        self._passphrases[key_id] = SecureBytes.coerce(passphrase)

    def lookup(self, key_id: str) -> SecureBytes | None:
        return self._passphrases.get(key_id)

    def delete(self, key_id: str) -> None:
        if (previous := self._passphrases.pop(key_id, None)) is not None:
            previous.clear()

    def clear(self) -> None:
        """Securely wipe all cached passphrases."""
        for passphrase in self._passphrases.values():
            passphrase.clear()
        self._passphrases.clear()

    def __len__(self) -> int:
        return len(self._passphrases)


class KeyringCredentialVault:
    """
    Passphrases stored in the operating system keychain through `keyring`.

    Each lookup returns a fresh SecureBytes the caller may clear.
    """

    def __init__(self, service_name: str = "com.macpgp.keychain") -> None:
        """
        Args:
            service_name: Keychain service the passphrases are filed under.
        """
        self._service = service_name

    def store(self, key_id: str, passphrase: str | SecureBytes) -> None:
        """
        Raises:
            CredentialVaultError: If the keychain rejects the write.
        """
        value = passphrase.decode() if isinstance(passphrase, SecureBytes) else passphrase
        try:
            keyring.set_password(self._service, key_id, value)
        except KeyringError as e:
            msg = f"Failed to store passphrase: {e}"
            raise CredentialVaultError(msg, key_id=key_id) from e
        logger.debug("Passphrase stored", key_id=key_id)

    def lookup(self, key_id: str) -> SecureBytes | None:
        """
        Raises:
            CredentialVaultError: If the keychain cannot be queried.
        """
        try:
            value = keyring.get_password(self._service, key_id)
        except KeyringError as e:
            msg = f"Failed to read passphrase: {e}"
            raise CredentialVaultError(msg, key_id=key_id) from e
        return SecureBytes.from_string(value) if value else None

    def delete(self, key_id: str) -> None:
        """
        Remove a stored passphrase. Missing entries are ignored.

        Raises:
            CredentialVaultError: If the keychain rejects the delete.
        """
        try:
            keyring.delete_password(self._service, key_id)
        except PasswordDeleteError:
            return
        except KeyringError as e:
            msg = f"Failed to delete passphrase: {e}"
            raise CredentialVaultError(msg, key_id=key_id) from e
