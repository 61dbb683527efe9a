"""
Decrypt messages when the recipient key is not known in advance.

Every local secret key with a cached passphrase is tried in keyring order until
one succeeds. Used for ad-hoc messages and clipboard contents, never for
backup containers.
"""

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import TypeVar

import structlog

from macpgp.crypto.protocol import CredentialVault, KeyStore
from macpgp.crypto.secure_bytes import SecureBytes
from macpgp.exceptions import CredentialVaultError, KeyDecryptionError, MacPGPError, NoSecretKeyError, NoValidKeyError
from macpgp.models.keys import KeyInfo

logger = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def first_success(items: Iterable[T], attempt: Callable[[T], R | None]) -> R | None:
    """Return the first non-None result of attempt, without evaluating the rest."""
    return next((result for result in map(attempt, items) if result is not None), None)


@dataclass(frozen=True, kw_only=True)
class FallbackResult:
    """
    Attributes:
        plaintext: Decrypted content.
        key: Key that decrypted it.
    """

    plaintext: bytes
    key: KeyInfo

    @property
    def text(self) -> str:
        try:
            return self.plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            msg = "Decrypted content is not UTF-8 text"
            raise KeyDecryptionError(msg, fingerprint=self.key.fingerprint) from e


class FallbackDecryptor:
    """
    Try each candidate secret key until one decrypts the data.

    Keys without a cached passphrase are skipped rather than tried with an
    empty one, and no key is tried twice.
    """

    def __init__(self, key_store: KeyStore, vault: CredentialVault) -> None:
        """
        Args:
            key_store: Key store holding candidate keys and performing decryption.
            vault: Source of cached passphrases.
        """
        self._key_store = key_store
        self._vault = vault

    def candidates(self, keys: Iterable[KeyInfo]) -> Iterator[tuple[KeyInfo, SecureBytes]]:
        """Yield (key, passphrase) for each distinct secret key with a cached passphrase."""
        seen: set[str] = set()
        for key in keys:
            if not key.is_secret or key.fingerprint in seen:
                continue
            seen.add(key.fingerprint)
            passphrase = self._lookup(key)
            if passphrase:
                yield key, passphrase
            else:
                logger.debug("No cached passphrase, skipping key", key_id=key.key_id)

    def decrypt(self, data: bytes, keys: Sequence[KeyInfo] | None = None) -> FallbackResult:
        """
        Decrypt data with the first candidate key that works.

        Args:
            data: Armored or binary OpenPGP message.
            keys: Candidate keys in order. Defaults to all secret keys in the store.

        Returns:
            The plaintext and the key that produced it.

        Raises:
            NoSecretKeyError: If there are no candidate keys at all.
            NoValidKeyError: If no candidate could decrypt the data.
        """
        candidates = list(keys) if keys is not None else list(self._key_store.secret_keys())
        if not candidates:
            raise NoSecretKeyError()

        attempted = 0

        def attempt(candidate: tuple[KeyInfo, SecureBytes]) -> FallbackResult | None:
            nonlocal attempted
            attempted += 1
            key, passphrase = candidate
            try:
                plaintext = self._key_store.decrypt_message(data, key.fingerprint, passphrase)
            except MacPGPError as e:
                logger.debug("Candidate key failed", key_id=key.key_id, error_type=type(e).__name__)
                return None
            return FallbackResult(plaintext=plaintext, key=key)

        result = first_success(self.candidates(candidates), attempt)
        if result is None:
            msg = "No key with a cached passphrase could decrypt the data"
            raise NoValidKeyError(msg, attempted=attempted)

        logger.info("Decrypted with fallback key", key_id=result.key.key_id, attempted=attempted)
        return result

    def decrypt_text(self, text: str, keys: Sequence[KeyInfo] | None = None) -> str:
        """
        Decrypt an armored message held as text, e.g. clipboard contents.

        Raises:
            NoSecretKeyError: If there are no candidate keys at all.
            NoValidKeyError: If no candidate could decrypt the text.
            KeyDecryptionError: If the plaintext is not UTF-8.
        """
        return self.decrypt(text.encode("utf-8"), keys).text

    def _lookup(self, key: KeyInfo) -> SecureBytes | None:
        try:
            return self._vault.lookup(key.fingerprint) or self._vault.lookup(key.key_id)
        except CredentialVaultError as e:
            logger.warning("Passphrase lookup failed", key_id=key.key_id, error=e.message)
            return None
