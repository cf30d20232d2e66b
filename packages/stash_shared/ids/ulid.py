"""ULID generation for locally assigned record identifiers.

Identifiers are 26 Crockford Base32 characters. Strings generated by one
``MonotonicUlid`` instance sort lexicographically in creation order, even
when several are created within the same millisecond.
"""

from __future__ import annotations

import secrets
import threading
import time

_ULID_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE_TABLE = {char: index for index, char in enumerate(_ULID_ALPHABET)}
_MAX_ULID_INT = (1 << 128) - 1
_MAX_ENTROPY = (1 << 80) - 1


def _encode(number: int) -> str:
    chars: list[str] = []
    for _ in range(26):
        number, remainder = divmod(number, 32)
        chars.append(_ULID_ALPHABET[remainder])
    return "".join(reversed(chars))


def ulid_timestamp_ms(value: str) -> int:
    """Return the millisecond timestamp encoded in one ULID string."""
    candidate = value.strip().upper()
    if len(candidate) != 26:
        raise ValueError("ULID string must be exactly 26 characters")
    number = 0
    for char in candidate:
        if char not in _DECODE_TABLE:
            raise ValueError(f"Invalid ULID character: {char!r}")
        number = (number << 5) | _DECODE_TABLE[char]
    if number > _MAX_ULID_INT:
        raise ValueError("ULID value exceeds 128-bit range")
    return number >> 80


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Generate one ULID from the wall clock (or an explicit timestamp)."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= (1 << 48):
        raise ValueError("timestamp_ms out of ULID 48-bit range")
    entropy = int.from_bytes(secrets.token_bytes(10), byteorder="big", signed=False)
    return _encode((ts_ms << 80) | entropy)


class MonotonicUlid:
    """Thread-safe ULID factory whose output never sorts backwards."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_entropy = 0

    def __call__(self, *, timestamp_ms: int | None = None) -> str:
        ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
        with self._lock:
            if ts_ms <= self._last_ms:
                if self._last_entropy >= _MAX_ENTROPY:
                    ts_ms = self._last_ms + 1
                    entropy = int.from_bytes(secrets.token_bytes(10), "big")
                else:
                    ts_ms = self._last_ms
                    entropy = self._last_entropy + 1
            else:
                entropy = int.from_bytes(secrets.token_bytes(10), "big")
            if ts_ms >= (1 << 48):
                raise ValueError("timestamp_ms out of ULID 48-bit range")
            self._last_ms = ts_ms
            self._last_entropy = entropy
            return _encode((ts_ms << 80) | entropy)


new_id = MonotonicUlid()
