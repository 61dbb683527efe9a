"""Zeroizable buffers for passphrases and derived keys."""

import ctypes
import hmac
from typing import Self


def wipe(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    if not buffer:
        return
    address = ctypes.addressof((ctypes.c_char * len(buffer)).from_buffer(buffer))
    ctypes.memset(address, 0, len(buffer))


class SecureBytes:
    """
    Bytes container that zeroes its memory when cleared.

    Use as context manager for guaranteed cleanup.
    """

    __slots__ = ("_data", "_cleared")

    def __init__(self, data: bytes | bytearray) -> None:
        self._data = bytearray(data)
        self._cleared = False

    def __del__(self) -> None:
        self.clear()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_: object) -> None:
        self.clear()

    def clear(self) -> None:
        """Zero memory. Idempotent."""
        if self._cleared:
            return
        wipe(self._data)
        self._cleared = True

    def __bytes__(self) -> bytes:
        """Warning: creates an insecure copy."""
        self._check_cleared()
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return not self._cleared and len(self._data) > 0

    def __repr__(self) -> str:
        if self._cleared:
            return "SecureBytes(<cleared>)"
        return f"SecureBytes(<{len(self._data)} bytes>)"

    def __eq__(self, other: object) -> bool:
        """Constant-time comparison."""
        if isinstance(other, SecureBytes):
            other_data = other._data if not other._cleared else None
        elif isinstance(other, (bytes, bytearray)):
            other_data = other
        else:
            return NotImplemented
        if self._cleared or other_data is None:
            return False
        return hmac.compare_digest(self._data, other_data)

    def __hash__(self) -> int:
        raise TypeError("SecureBytes is not hashable")

    @property
    def is_cleared(self) -> bool:
        return self._cleared

    def decode(self, encoding: str = "utf-8") -> str:
        """Warning: returned string is not securely managed."""
        self._check_cleared()
        return self._data.decode(encoding)

    def _check_cleared(self) -> None:
        if self._cleared:
            raise RuntimeError("SecureBytes has been cleared")

    @classmethod
    def from_string(cls, s: str, encoding: str = "utf-8") -> Self:
        """Create from string. Zeros the intermediate buffer."""
        encoded = bytearray(s, encoding)
        try:
            return cls(encoded)
        finally:
            wipe(encoded)

    @classmethod
    def coerce(cls, value: "str | bytes | bytearray | SecureBytes") -> "SecureBytes":
        """Return value unchanged if already SecureBytes, otherwise wrap a copy."""
        if isinstance(value, SecureBytes):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        return cls(value)
