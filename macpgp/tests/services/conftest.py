from collections.abc import Callable
from pathlib import Path

import pgpy
import pytest

from macpgp.config import MacPGPConfig
from macpgp.crypto.pgpy_keystore import PgpyKeyStore
from macpgp.services.backup_service import BackupRequest, BackupService
from macpgp.tests.utils.pgp_keys import fingerprint_of


@pytest.fixture
def backup_service(key_store: PgpyKeyStore, config: MacPGPConfig) -> BackupService:
    return BackupService(key_store, config)


@pytest.fixture
def make_backup(
    backup_service: BackupService,
    alice_key: pgpy.PGPKey,
    tmp_path: Path,
) -> Callable[..., Path]:
    def _make(passphrase: str | None = None, name: str = "backup.macpgp") -> Path:
        request = BackupRequest(fingerprints=[fingerprint_of(alice_key)], passphrase=passphrase)
        return backup_service.create_backup(request, tmp_path / name).path

    return _make
