from pathlib import Path

import pgpy
import pytest

from macpgp.config import MacPGPConfig
from macpgp.crypto.pgpy_keystore import PgpyKeyStore
from macpgp.tests.utils.pgp_keys import (
    ALICE_PASSPHRASE,
    BOB_PASSPHRASE,
    CAROL_PASSPHRASE,
    create_test_key,
)


@pytest.fixture(scope="session")
def alice_key() -> pgpy.PGPKey:
    return create_test_key("Alice", "alice@example.com", ALICE_PASSPHRASE)


@pytest.fixture(scope="session")
def bob_key() -> pgpy.PGPKey:
    return create_test_key("Bob", "bob@example.com", BOB_PASSPHRASE)


@pytest.fixture(scope="session")
def carol_key() -> pgpy.PGPKey:
    return create_test_key("Carol", "carol@example.com", CAROL_PASSPHRASE)


@pytest.fixture
def key_store(alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey) -> PgpyKeyStore:
    store = PgpyKeyStore()
    store.add_key(str(alice_key))
    store.add_key(str(bob_key))
    return store


@pytest.fixture
def config(tmp_path: Path) -> MacPGPConfig:
    return MacPGPConfig(
        keyring_path=tmp_path / "keyring.asc",
        reminder_state_path=tmp_path / "backup-state.json",
        created_by="Test User",
        device_name="test-device",
    )
