from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pgpy
import pytest

from macpgp import MacPGPClient, MacPGPConfig, RestoreState
from macpgp.crypto.pgpy_keystore import PgpyKeyStore
from macpgp.exceptions import NoKeysSelectedError
from macpgp.services.credential_vault import InMemoryCredentialVault, KeyringCredentialVault
from macpgp.tests.utils.pgp_keys import BOB_PASSPHRASE, encrypt_to, fingerprint_of


@pytest.fixture
def client(config: MacPGPConfig, key_store: PgpyKeyStore) -> MacPGPClient:
    return MacPGPClient(config, key_store=key_store, vault=InMemoryCredentialVault())


def test_default_key_store_loads_configured_keyring(config: MacPGPConfig, alice_key: pgpy.PGPKey) -> None:
    store = PgpyKeyStore(config.keyring_path)
    store.add_key(str(alice_key))
    store.persist()

    client = MacPGPClient(config, vault=InMemoryCredentialVault())

    assert [k.fingerprint for k in client.key_store.secret_keys()] == [fingerprint_of(alice_key)]


def test_default_vault_uses_os_keychain(config: MacPGPConfig, key_store: PgpyKeyStore) -> None:
    client = MacPGPClient(config, key_store=key_store)

    assert isinstance(client._vault, KeyringCredentialVault)


def test_default_backup_path(client: MacPGPClient, tmp_path: Path) -> None:
    path = client.default_backup_path(tmp_path, now=datetime(2024, 5, 1, 9, 30, 5))

    assert path == tmp_path / "MacPGP-Backup-2024-05-01-093005.macpgp"


def test_backup_and_restore_round_trip(
    client: MacPGPClient, alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey, tmp_path: Path
) -> None:
    fingerprints = [fingerprint_of(alice_key), fingerprint_of(bob_key)]
    backup = client.create_backup(
        fingerprints,
        tmp_path / "keys.macpgp",
        passphrase="correct horse",
        confirm_passphrase="correct horse",
        name="Laptop keys",
    )
    target = PgpyKeyStore()
    restorer = MacPGPClient(client.config, key_store=target, vault=InMemoryCredentialVault())

    session = restorer.start_restore(backup.path)
    assert session.state == RestoreState.AWAITING_PASSPHRASE
    preview = session.provide_passphrase("correct horse")
    assert preview.container is not None
    assert preview.container.metadata.name == "Laptop keys"
    session.confirm()
    result = session.restore()

    assert result.imported_count == 2
    assert [k.fingerprint for k in target.secret_keys()] == fingerprints


def test_create_backup_records_reminder(client: MacPGPClient, alice_key: pgpy.PGPKey, tmp_path: Path) -> None:
    assert client.is_backup_reminder_needed()

    result = client.create_backup([fingerprint_of(alice_key)], tmp_path / "keys.macpgp")

    assert not client.is_backup_reminder_needed()
    assert client.reminders.last_backup_at == result.completed_at
    assert client.config.reminder_state_path is not None
    assert client.config.reminder_state_path.exists()


def test_create_backup_validation_error_propagates(client: MacPGPClient) -> None:
    with pytest.raises(NoKeysSelectedError):
        client.create_backup([])


def test_create_backup_defaults_destination(
    client: MacPGPClient, alice_key: pgpy.PGPKey, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)

    result = client.create_backup([fingerprint_of(alice_key)])

    assert result.path.parent == tmp_path
    assert result.path.name.startswith("MacPGP-Backup-")
    assert result.path.suffix == ".macpgp"


def test_decrypt_text_uses_cached_passphrase(config: MacPGPConfig, key_store: PgpyKeyStore, bob_key: pgpy.PGPKey) -> None:
    vault = InMemoryCredentialVault()
    vault.store(fingerprint_of(bob_key), BOB_PASSPHRASE)
    client = MacPGPClient(config, key_store=key_store, vault=vault)

    assert client.decrypt_text(encrypt_to(bob_key, b"hello").decode()) == "hello"
    assert client.decrypt(encrypt_to(bob_key, b"hello")).key.fingerprint == fingerprint_of(bob_key)


def test_injected_reminders_are_used(config: MacPGPConfig, key_store: PgpyKeyStore) -> None:
    reminders = Mock()
    reminders.is_reminder_needed.return_value = False

    client = MacPGPClient(config, key_store=key_store, vault=InMemoryCredentialVault(), reminders=reminders)

    assert not client.is_backup_reminder_needed()


@pytest.mark.asyncio
async def test_create_backup_async(client: MacPGPClient, alice_key: pgpy.PGPKey, tmp_path: Path) -> None:
    result = await client.create_backup_async([fingerprint_of(alice_key)], tmp_path / "async.macpgp", passphrase="pw")

    assert result.encrypted
    assert result.path.exists()


@pytest.mark.asyncio
async def test_create_backup_async_records_name_and_description(
    client: MacPGPClient, alice_key: pgpy.PGPKey, tmp_path: Path
) -> None:
    result = await client.create_backup_async(
        [fingerprint_of(alice_key)], tmp_path / "named.macpgp", name="Weekly", description="Laptop keys"
    )

    assert not result.encrypted
    assert result.container.metadata.name == "Weekly"
    assert result.container.metadata.description == "Laptop keys"
    restore = client.start_restore(result.path)
    assert restore.preview.container.metadata.name == "Weekly"
