"""
Backup container domain models.
"""

import socket
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from macpgp.exceptions import MalformedContainerError, UnsupportedVersionError

FORMAT_MARKER = b"MACPGP-ENC-V1\n"
SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16


class BackupVersion(StrEnum):
    """Container schema versions."""

    V1 = "1.0"


class EncryptionType(StrEnum):
    """Whole-file encryption applied to a backup."""

    NONE = "none"
    AES256_GCM = "aes256"


def _default_device_name() -> str:
    return socket.gethostname() or "Unknown Device"


def _utc_seconds(value: datetime) -> datetime:
    return value.astimezone(UTC).replace(microsecond=0)


@dataclass(frozen=True, kw_only=True)
class BackupMetadata:
    """
    User-facing description of a backup.

    Attributes:
        name: Optional backup name.
        description: Optional free-form description.
        device_name: Device that produced the backup (host name by default).
    """

    name: str | None = None
    description: str | None = None
    device_name: str = field(default_factory=_default_device_name)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"deviceName": self.device_name}
        if self.name is not None:
            data["name"] = self.name
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Self:
        if not isinstance(data, dict):
            msg = "Backup metadata must be a JSON object"
            raise MalformedContainerError(msg)
        device_name = data.get("deviceName")
        if not isinstance(device_name, str):
            msg = "Backup metadata is missing deviceName"
            raise MalformedContainerError(msg)
        return cls(
            name=_optional_str(data, "name"),
            description=_optional_str(data, "description"),
            device_name=device_name,
        )


@dataclass(frozen=True, kw_only=True)
class BackupContainer:
    """
    The logical envelope describing a backup's contents.

    Containers are immutable; use with_checksum() to derive a corrected copy.
    Timestamps are normalized to UTC with second precision, matching the
    ISO-8601 representation written to disk.

    Attributes:
        key_fingerprints: Fingerprints of bundled keys, in export order.
        encryption: Whole-file encryption applied to the backup.
        created_by: Free-form identity of the creator.
        metadata: Name, description and device name.
        checksum: Hex SHA-256 of the unencrypted key-data section.
        created_at: Backup creation instant.
        version: Container schema version.
        backup_id: Unique backup identifier.
    """

    key_fingerprints: tuple[str, ...]
    encryption: EncryptionType
    created_by: str
    metadata: BackupMetadata = field(default_factory=BackupMetadata)
    checksum: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: BackupVersion = BackupVersion.V1
    backup_id: str = field(default_factory=lambda: str(uuid.uuid4()).upper())

    def __post_init__(self) -> None:
        fingerprints = tuple(self.key_fingerprints)
        if len(set(fingerprints)) != len(fingerprints):
            msg = "key_fingerprints must be unique"
            raise ValueError(msg)
        object.__setattr__(self, "key_fingerprints", fingerprints)
        object.__setattr__(self, "created_at", _utc_seconds(self.created_at))

    @property
    def key_count(self) -> int:
        return len(self.key_fingerprints)

    @property
    def is_encrypted(self) -> bool:
        return self.encryption != EncryptionType.NONE

    @property
    def display_description(self) -> str:
        key_text = "key" if self.key_count == 1 else "keys"
        encryption_text = "Encrypted" if self.is_encrypted else "Unencrypted"
        return f"{encryption_text} backup of {self.key_count} {key_text}"

    def with_checksum(self, checksum: str) -> Self:
        """Return a copy carrying the given key-data checksum."""
        return replace(self, checksum=checksum)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.backup_id,
            "version": self.version.value,
            "createdDate": self.created_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "createdBy": self.created_by,
            "keyFingerprints": list(self.key_fingerprints),
            "encryptionType": self.encryption.value,
            "metadata": self.metadata.to_dict(),
        }
        if self.checksum is not None:
            data["checksum"] = self.checksum
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Self:
        """
        Build a container from decoded metadata JSON.

        Unknown fields are ignored so newer writers stay readable.

        Raises:
            UnsupportedVersionError: If the schema version is unknown.
            MalformedContainerError: If a required field is missing or invalid.
        """
        if not isinstance(data, dict):
            msg = "Backup metadata must be a JSON object"
            raise MalformedContainerError(msg)

        version = _required(data, "version", str)
        try:
            parsed_version = BackupVersion(version)
        except ValueError:
            msg = f"Unsupported backup version: {version}"
            raise UnsupportedVersionError(msg, version=version) from None

        encryption = _required(data, "encryptionType", str)
        try:
            parsed_encryption = EncryptionType(encryption)
        except ValueError:
            msg = f"Unknown encryption type: {encryption}"
            raise MalformedContainerError(msg) from None

        fingerprints = _required(data, "keyFingerprints", list)
        if not all(isinstance(fp, str) for fp in fingerprints):
            msg = "keyFingerprints must contain strings"
            raise MalformedContainerError(msg)

        created = _required(data, "createdDate", str)
        try:
            created_at = datetime.fromisoformat(created)
        except ValueError:
            msg = f"Invalid createdDate: {created}"
            raise MalformedContainerError(msg) from None
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)

        try:
            return cls(
                backup_id=_required(data, "id", str),
                version=parsed_version,
                created_at=created_at,
                created_by=_required(data, "createdBy", str),
                key_fingerprints=tuple(fingerprints),
                encryption=parsed_encryption,
                checksum=_optional_str(data, "checksum"),
                metadata=BackupMetadata.from_dict(data.get("metadata")),
            )
        except ValueError as e:
            raise MalformedContainerError(f"Invalid backup metadata: {e}") from e


@dataclass(frozen=True, kw_only=True)
class EncryptedEnvelope:
    """
    Password-encrypted payload: marker || salt || sealed.

    Attributes:
        salt: PBKDF2 salt, unique per encryption.
        sealed: AES-GCM combined output (nonce || ciphertext || tag).
        format_marker: Literal tag identifying the envelope scheme.
    """

    salt: bytes
    sealed: bytes
    format_marker: bytes = FORMAT_MARKER

    def __post_init__(self) -> None:
        if len(self.salt) != SALT_SIZE:
            msg = f"Salt must be {SALT_SIZE} bytes, got {len(self.salt)}"
            raise ValueError(msg)

    def to_bytes(self) -> bytes:
        return self.format_marker + self.salt + self.sealed

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """
        Split raw envelope bytes. The format marker must already be validated.

        Raises:
            MalformedContainerError: If the data is too short to hold an envelope.
        """
        header = len(FORMAT_MARKER) + SALT_SIZE
        if len(data) < header + NONCE_SIZE + TAG_SIZE:
            msg = f"Encrypted backup too short: {len(data)} bytes"
            raise MalformedContainerError(msg)
        return cls(
            format_marker=data[: len(FORMAT_MARKER)],
            salt=data[len(FORMAT_MARKER) : header],
            sealed=data[header:],
        )


def _required(data: dict[str, Any], name: str, expected: type) -> Any:
    value = data.get(name)
    if not isinstance(value, expected):
        msg = f"Backup metadata field {name!r} is missing or invalid"
        raise MalformedContainerError(msg)
    return value


def _optional_str(data: dict[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is None or isinstance(value, str):
        return value
    msg = f"Backup metadata field {name!r} must be a string"
    raise MalformedContainerError(msg)
