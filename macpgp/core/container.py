"""
Plaintext backup container codec.

A container is line-delimited text:

    -----BEGIN MACPGP BACKUP-----
    <metadata JSON>
    -----END MACPGP BACKUP METADATA-----
    <concatenated armored key blocks>
    -----END MACPGP BACKUP-----

The metadata records a SHA-256 checksum of the key-data section, which is
verified on decode. Encryption is applied to the finished container as a
whole and is not this module's concern.
"""

import hashlib
import hmac
import json
import re
from dataclasses import dataclass

import structlog

from macpgp.exceptions import ChecksumMismatchError, EncodingError, MalformedContainerError
from macpgp.models.backup import BackupContainer

logger = structlog.get_logger(__name__)

BEGIN_MARKER = b"-----BEGIN MACPGP BACKUP-----"
METADATA_END_MARKER = b"-----END MACPGP BACKUP METADATA-----"
END_MARKER = b"-----END MACPGP BACKUP-----"

# Any run of five dashes could forge a marker inside a JSON string value.
_MARKER_DASHES = re.compile(r"-(?=----)")


@dataclass(frozen=True, kw_only=True)
class DecodedContainer:
    """
    A parsed and checksum-verified container.

    Attributes:
        container: Container metadata.
        key_data: Raw key-data section (concatenated armored blocks).
    """

    container: BackupContainer
    key_data: bytes


def compute_checksum(key_data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of the key-data section."""
    return hashlib.sha256(key_data).hexdigest()


def encode(container: BackupContainer, key_data: bytes) -> bytes:
    """
    Serialize a container and its key data.

    The checksum of key_data is computed here and embedded in the metadata,
    replacing any checksum already present on the container. Dash runs in
    metadata strings are written as JSON escapes so user text can never
    contain a marker.

    Raises:
        EncodingError: If key_data is not valid UTF-8 text.
    """
    try:
        key_data.decode("utf-8")
    except UnicodeDecodeError as e:
        msg = f"Key data is not valid UTF-8: {e}"
        raise EncodingError(msg) from e

    stamped = container.with_checksum(compute_checksum(key_data))
    metadata_json = json.dumps(stamped.to_dict(), indent=2, ensure_ascii=False)
    metadata = _MARKER_DASHES.sub(r"\\u002d", metadata_json).encode("utf-8")

    return b"".join(
        (
            BEGIN_MARKER + b"\n",
            metadata,
            b"\n" + METADATA_END_MARKER + b"\n",
            key_data,
            END_MARKER + b"\n",
        )
    )


def read_metadata(data: bytes) -> BackupContainer:
    """
    Parse only the metadata block, without touching the key data.

    Raises:
        MalformedContainerError: If the metadata markers are missing or the
            JSON cannot be parsed.
        UnsupportedVersionError: If the schema version is unknown.
    """
    container, _ = _parse_metadata(data)
    return container


def decode(data: bytes) -> DecodedContainer:
    """
    Parse a plaintext container and verify its checksum.

    Markers are located by first occurrence.

    Raises:
        MalformedContainerError: If a marker is missing or metadata is invalid.
        UnsupportedVersionError: If the schema version is unknown.
        ChecksumMismatchError: If the key data does not match the recorded checksum.
    """
    container, key_start = _parse_metadata(data)

    key_end = data.find(END_MARKER, key_start)
    if key_end < 0:
        msg = "Backup end marker not found"
        raise MalformedContainerError(msg, marker=END_MARKER.decode())
    key_data = data[key_start:key_end]

    _verify_checksum(container, key_data)
    return DecodedContainer(container=container, key_data=key_data)


def _parse_metadata(data: bytes) -> tuple[BackupContainer, int]:
    begin = data.find(BEGIN_MARKER)
    if begin < 0:
        msg = "Backup begin marker not found"
        raise MalformedContainerError(msg, marker=BEGIN_MARKER.decode())

    metadata_start = begin + len(BEGIN_MARKER)
    metadata_end = data.find(METADATA_END_MARKER, metadata_start)
    if metadata_end < 0:
        msg = "Backup metadata end marker not found"
        raise MalformedContainerError(msg, marker=METADATA_END_MARKER.decode())

    try:
        raw = json.loads(data[metadata_start:metadata_end].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = f"Backup metadata is not valid JSON: {e}"
        raise MalformedContainerError(msg) from e

    key_start = metadata_end + len(METADATA_END_MARKER)
    if data[key_start : key_start + 1] == b"\n":
        key_start += 1
    return BackupContainer.from_dict(raw), key_start


def _verify_checksum(container: BackupContainer, key_data: bytes) -> None:
    if container.checksum is None:
        logger.warning("Backup has no checksum, skipping verification", backup_id=container.backup_id)
        return
    actual = compute_checksum(key_data)
    if hmac.compare_digest(actual.encode("ascii"), container.checksum.lower().encode("utf-8")):
        return
    msg = "Backup content is corrupted: key data checksum mismatch"
    raise ChecksumMismatchError(msg, expected=container.checksum, actual=actual)
