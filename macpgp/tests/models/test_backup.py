from datetime import UTC, datetime, timedelta, timezone

import pytest

from macpgp.exceptions import MalformedContainerError, UnsupportedVersionError
from macpgp.models.backup import (
    FORMAT_MARKER,
    BackupContainer,
    BackupMetadata,
    BackupVersion,
    EncryptedEnvelope,
    EncryptionType,
)


def _container(**overrides: object) -> BackupContainer:
    params: dict[str, object] = {
        "key_fingerprints": ("AAAA1111", "BBBB2222"),
        "encryption": EncryptionType.NONE,
        "created_by": "tester",
        "metadata": BackupMetadata(name="Weekly", device_name="laptop"),
        "created_at": datetime(2024, 5, 1, 9, 30, 15, tzinfo=UTC),
        "backup_id": "6F9619FF-8B86-D011-B42D-00C04FC964FF",
    }
    params.update(overrides)
    return BackupContainer(**params)  # type: ignore[arg-type]


def test_container_defaults() -> None:
    container = BackupContainer(key_fingerprints=("AAAA",), encryption=EncryptionType.NONE, created_by="me")

    assert container.version == BackupVersion.V1
    assert container.checksum is None
    assert container.backup_id == container.backup_id.upper()
    assert container.created_at.tzinfo is not None
    assert container.created_at.microsecond == 0


def test_container_rejects_duplicate_fingerprints() -> None:
    with pytest.raises(ValueError, match="unique"):
        _container(key_fingerprints=("AAAA", "AAAA"))


def test_container_normalizes_created_at_to_utc() -> None:
    local = datetime(2024, 5, 1, 11, 30, 15, 999, tzinfo=timezone(timedelta(hours=2)))

    container = _container(created_at=local)

    assert container.created_at == datetime(2024, 5, 1, 9, 30, 15, tzinfo=UTC)


def test_container_derived_properties() -> None:
    plain = _container()
    single = _container(key_fingerprints=("AAAA",), encryption=EncryptionType.AES256_GCM)

    assert plain.key_count == 2
    assert not plain.is_encrypted
    assert plain.display_description == "Unencrypted backup of 2 keys"
    assert single.is_encrypted
    assert single.display_description == "Encrypted backup of 1 key"


def test_with_checksum_returns_copy() -> None:
    container = _container()

    stamped = container.with_checksum("ab" * 32)

    assert stamped.checksum == "ab" * 32
    assert container.checksum is None
    assert stamped.backup_id == container.backup_id


def test_to_dict_uses_wire_names_and_omits_missing_values() -> None:
    data = _container().to_dict()

    assert data == {
        "id": "6F9619FF-8B86-D011-B42D-00C04FC964FF",
        "version": "1.0",
        "createdDate": "2024-05-01T09:30:15Z",
        "createdBy": "tester",
        "keyFingerprints": ["AAAA1111", "BBBB2222"],
        "encryptionType": "none",
        "metadata": {"name": "Weekly", "deviceName": "laptop"},
    }


def test_from_dict_reads_to_dict_output() -> None:
    original = _container(encryption=EncryptionType.AES256_GCM).with_checksum("cd" * 32)

    assert BackupContainer.from_dict(original.to_dict()) == original


def test_from_dict_ignores_unknown_fields() -> None:
    data = _container().to_dict()
    data["futureField"] = {"nested": True}
    data["metadata"]["color"] = "blue"

    container = BackupContainer.from_dict(data)

    assert container.key_fingerprints == ("AAAA1111", "BBBB2222")


def test_from_dict_rejects_unknown_version() -> None:
    data = _container().to_dict()
    data["version"] = "2.0"

    with pytest.raises(UnsupportedVersionError) as exc_info:
        BackupContainer.from_dict(data)

    assert exc_info.value.version == "2.0"


@pytest.mark.parametrize("field", ["id", "createdDate", "createdBy", "keyFingerprints", "encryptionType"])
def test_from_dict_rejects_missing_required_field(field: str) -> None:
    data = _container().to_dict()
    del data[field]

    with pytest.raises(MalformedContainerError):
        BackupContainer.from_dict(data)


def test_from_dict_rejects_unknown_encryption_type() -> None:
    data = _container().to_dict()
    data["encryptionType"] = "rot13"

    with pytest.raises(MalformedContainerError, match="Unknown encryption type"):
        BackupContainer.from_dict(data)


def test_from_dict_rejects_duplicate_fingerprints() -> None:
    data = _container().to_dict()
    data["keyFingerprints"] = ["AAAA", "AAAA"]

    with pytest.raises(MalformedContainerError):
        BackupContainer.from_dict(data)


def test_from_dict_treats_naive_date_as_utc() -> None:
    data = _container().to_dict()
    data["createdDate"] = "2024-05-01T09:30:15"

    container = BackupContainer.from_dict(data)

    assert container.created_at == datetime(2024, 5, 1, 9, 30, 15, tzinfo=UTC)


def test_metadata_requires_device_name() -> None:
    with pytest.raises(MalformedContainerError, match="deviceName"):
        BackupMetadata.from_dict({"name": "x"})


def test_envelope_to_bytes_layout() -> None:
    envelope = EncryptedEnvelope(salt=b"s" * 16, sealed=b"n" * 12 + b"ct" + b"t" * 16)

    assert envelope.to_bytes() == FORMAT_MARKER + b"s" * 16 + b"n" * 12 + b"ct" + b"t" * 16


def test_envelope_from_bytes_splits_fields() -> None:
    raw = FORMAT_MARKER + b"s" * 16 + b"n" * 12 + b"t" * 16

    envelope = EncryptedEnvelope.from_bytes(raw)

    assert envelope.format_marker == FORMAT_MARKER
    assert envelope.salt == b"s" * 16
    assert envelope.sealed == b"n" * 12 + b"t" * 16


def test_envelope_from_bytes_rejects_truncated_data() -> None:
    with pytest.raises(MalformedContainerError, match="too short"):
        EncryptedEnvelope.from_bytes(FORMAT_MARKER + b"s" * 16 + b"n" * 12)


def test_envelope_rejects_wrong_salt_size() -> None:
    with pytest.raises(ValueError, match="Salt"):
        EncryptedEnvelope(salt=b"short", sealed=b"")
