from unittest.mock import patch

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from macpgp.crypto.protocol import CredentialVault
from macpgp.exceptions import CredentialVaultError
from macpgp.services.credential_vault import InMemoryCredentialVault, KeyringCredentialVault


def test_vaults_satisfy_protocol() -> None:
    assert isinstance(InMemoryCredentialVault(), CredentialVault)
    assert isinstance(KeyringCredentialVault(), CredentialVault)


def test_in_memory_store_and_lookup() -> None:
    vault = InMemoryCredentialVault()
    vault.store("KEY1", "secret")

    passphrase = vault.lookup("KEY1")

    assert passphrase is not None
    assert bytes(passphrase) == b"secret"
    assert vault.lookup("KEY2") is None
    assert len(vault) == 1


def test_in_memory_store_replaces_and_clears_previous() -> None:
    vault = InMemoryCredentialVault()
    vault.store("KEY1", "old")
    old = vault.lookup("KEY1")

    vault.store("KEY1", "new")

    assert old is not None and old.is_cleared
    assert bytes(vault.lookup("KEY1")) == b"new"  # type: ignore[arg-type]


def test_in_memory_clear_wipes_everything() -> None:
    vault = InMemoryCredentialVault()
    vault.store("KEY1", "a")
    passphrase = vault.lookup("KEY1")

    vault.clear()

    assert len(vault) == 0
    assert passphrase is not None and passphrase.is_cleared


def test_keyring_lookup_uses_service_name() -> None:
    vault = KeyringCredentialVault("com.example.test")

    with patch("macpgp.services.credential_vault.keyring.get_password", return_value="secret") as get_password:
        passphrase = vault.lookup("ABCD")

    get_password.assert_called_once_with("com.example.test", "ABCD")
    assert passphrase is not None
    assert bytes(passphrase) == b"secret"


def test_keyring_lookup_missing_returns_none() -> None:
    with patch("macpgp.services.credential_vault.keyring.get_password", return_value=None):
        assert KeyringCredentialVault().lookup("ABCD") is None


def test_keyring_lookup_failure_raises_vault_error() -> None:
    with patch("macpgp.services.credential_vault.keyring.get_password", side_effect=KeyringError("locked")):
        with pytest.raises(CredentialVaultError, match="locked"):
            KeyringCredentialVault().lookup("ABCD")


def test_keyring_store_passes_plain_string() -> None:
    with patch("macpgp.services.credential_vault.keyring.set_password") as set_password:
        KeyringCredentialVault().store("ABCD", "secret")

    set_password.assert_called_once_with("com.macpgp.keychain", "ABCD", "secret")


def test_keyring_delete_ignores_missing_entry() -> None:
    with patch(
        "macpgp.services.credential_vault.keyring.delete_password",
        side_effect=PasswordDeleteError("not found"),
    ):
        KeyringCredentialVault().delete("ABCD")


def test_keyring_delete_failure_raises_vault_error() -> None:
    with patch("macpgp.services.credential_vault.keyring.delete_password", side_effect=KeyringError("denied")):
        with pytest.raises(CredentialVaultError):
            KeyringCredentialVault().delete("ABCD")
