"""
Cryptographic operations for MacPGP backups.

This module provides:
- Passphrase-based AES-256-GCM encryption of backup payloads
- A pgpy-backed OpenPGP key store
- Secure memory handling
"""

from macpgp.crypto.cipher import decrypt, derive_key, encrypt, is_encrypted
from macpgp.crypto.pgpy_keystore import PgpyKeyStore
from macpgp.crypto.protocol import CredentialVault, KeyStore
from macpgp.crypto.secure_bytes import SecureBytes

__all__ = [
    "SecureBytes",
    "KeyStore",
    "CredentialVault",
    "PgpyKeyStore",
    "derive_key",
    "encrypt",
    "decrypt",
    "is_encrypted",
]
