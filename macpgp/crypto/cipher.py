"""
Password-based authenticated encryption for backup payloads.

Payloads are sealed with AES-256-GCM under a key derived with
PBKDF2-HMAC-SHA256 (100,000 iterations). The on-disk envelope is:

    b"MACPGP-ENC-V1\\n" || salt (16) || nonce (12) || ciphertext || tag (16)

Iteration count and key length are fixed so every envelope written by this
version can be opened by the same version.
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.exceptions import InvalidPassphraseError, PassphraseRequiredError, UnrecognizedFormatError
from macpgp.models.backup import FORMAT_MARKER, NONCE_SIZE, SALT_SIZE, EncryptedEnvelope

PBKDF2_ITERATIONS = 100_000
KEY_SIZE = 32

Passphrase = str | bytes | SecureBytes


def is_encrypted(data: bytes) -> bool:
    """Check whether data starts with the encrypted envelope marker."""
    return data[: len(FORMAT_MARKER)] == FORMAT_MARKER


def derive_key(passphrase: Passphrase, salt: bytes) -> SecureBytes:
    """
    Derive a 256-bit key from a passphrase with PBKDF2-HMAC-SHA256.

    Args:
        passphrase: User passphrase.
        salt: 16-byte random salt.

    Returns:
        The derived key. The caller owns it and should clear() it.

    Raises:
        PassphraseRequiredError: If the passphrase is empty.
        ValueError: If the salt has the wrong length.
    """
    secret = SecureBytes.coerce(passphrase)
    try:
        if not secret:
            raise PassphraseRequiredError()
        if len(salt) != SALT_SIZE:
            msg = f"Salt must be {SALT_SIZE} bytes, got {len(salt)}"
            raise ValueError(msg)
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        return SecureBytes(kdf.derive(bytes(secret)))
    finally:
        if secret is not passphrase:
            secret.clear()


def encrypt(payload: bytes, passphrase: Passphrase) -> EncryptedEnvelope:
    """
    Seal a payload under a passphrase.

    A fresh salt and nonce are drawn on every call, so encrypting the same
    payload twice never yields the same envelope.

    Raises:
        PassphraseRequiredError: If the passphrase is empty.
    """
    salt = os.urandom(SALT_SIZE)
    with derive_key(passphrase, salt) as key:
        nonce = os.urandom(NONCE_SIZE)
        sealed = nonce + AESGCM(bytes(key)).encrypt(nonce, payload, None)
    return EncryptedEnvelope(salt=salt, sealed=sealed)


def decrypt(data: bytes, passphrase: Passphrase) -> bytes:
    """
    Open an encrypted envelope.

    Args:
        data: Raw envelope bytes, starting with the format marker.
        passphrase: Passphrase used at encryption time.

    Returns:
        The original payload.

    Raises:
        PassphraseRequiredError: If the passphrase is empty.
        UnrecognizedFormatError: If the format marker does not match.
        MalformedContainerError: If the envelope is truncated.
        InvalidPassphraseError: If authentication fails (wrong passphrase or
            tampered ciphertext; the two are indistinguishable).
    """
    if not passphrase:
        raise PassphraseRequiredError()
    if not is_encrypted(data):
        msg = "Unrecognized encrypted backup format"
        raise UnrecognizedFormatError(msg, marker=data[: len(FORMAT_MARKER)])

    envelope = EncryptedEnvelope.from_bytes(data)
    nonce, ciphertext = envelope.sealed[:NONCE_SIZE], envelope.sealed[NONCE_SIZE:]
    with derive_key(passphrase, envelope.salt) as key:
        try:
            return AESGCM(bytes(key)).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise InvalidPassphraseError() from None
