"""
Key domain models.
"""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True, kw_only=True)
class KeyInfo:
    """
    A key held by the key store, independent of the PGP library in use.

    Attributes:
        fingerprint: Uppercase hex fingerprint without spaces.
        user_ids: User IDs attached to the primary key.
        is_secret: Whether secret key material is available.
        created_at: Key creation time.
        expires_at: Key expiration time, if any.
    """

    fingerprint: str
    user_ids: tuple[str, ...] = ()
    is_secret: bool = False
    created_at: datetime | None = None
    expires_at: datetime | None = None

    @property
    def key_id(self) -> str:
        """Long key ID (last 16 hex characters of the fingerprint)."""
        return self.fingerprint[-16:]

    @property
    def short_key_id(self) -> str:
        return self.fingerprint[-8:]

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at < datetime.now(UTC)

    @property
    def display_name(self) -> str:
        return self.user_ids[0] if self.user_ids else self.key_id

    @property
    def formatted_fingerprint(self) -> str:
        return " ".join(self.fingerprint[i : i + 4] for i in range(0, len(self.fingerprint), 4))
