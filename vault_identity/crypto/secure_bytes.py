"""Zeroable container for key material held in memory."""

import ctypes
import hmac
from typing import Self


def _secure_zero(buffer: bytearray) -> None:
    """Overwrite `buffer` in place with zeros."""
    size = len(buffer)
    if size:
        view = (ctypes.c_char * size).from_buffer(buffer)
        ctypes.memset(ctypes.addressof(view), 0, size)


class SecureBytes:
    """
    A private, mutable copy of secret bytes that can be wiped.

    CredentialCache keeps the master key here so that replacing the key or
    logging out overwrites the old value instead of leaving it to the
    garbage collector. Reading the value back with bytes() makes an ordinary
    copy; callers should keep such copies short-lived.
    """

    __slots__ = ("_buffer", "_wiped")

    def __init__(self, secret: bytes | bytearray) -> None:
        self._buffer = bytearray(secret)
        self._wiped = False

    @property
    def is_cleared(self) -> bool:
        return self._wiped

    def clear(self) -> None:
        """Wipe the buffer. Safe to call more than once."""
        if not self._wiped:
            _secure_zero(self._buffer)
            self._wiped = True

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_: object) -> None:
        self.clear()

    def __del__(self) -> None:
        self.clear()

    def __bytes__(self) -> bytes:
        if self._wiped:
            raise RuntimeError("SecureBytes has been cleared")
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def __bool__(self) -> bool:
        return bool(self._buffer) and not self._wiped

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecureBytes):
            other = other._buffer if not other._wiped else None
        elif not isinstance(other, (bytes, bytearray)):
            return NotImplemented
        # Constant time, and a wiped value equals nothing.
        return other is not None and not self._wiped and hmac.compare_digest(self._buffer, other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return "SecureBytes(<cleared>)" if self._wiped else f"SecureBytes(<{len(self)} bytes>)"
