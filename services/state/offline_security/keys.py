"""PBKDF2 key derivation with a small per-password cache."""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


def password_fingerprint(password: str) -> str:
    """Return a stable non-reversible identifier for one password input."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class KeyDeriver:
    """Derive AES keys from secrets, caching the last few derivations.

    The cache is keyed by password fingerprint, so a rotated secret always
    derives a fresh key.
    """

    def __init__(
        self,
        *,
        salt: bytes,
        iterations: int,
        length_bytes: int,
        cache_size: int = 4,
    ) -> None:
        self._salt = salt
        self._iterations = iterations
        self._length_bytes = length_bytes
        self._cache_size = cache_size
        self._cache: OrderedDict[str, bytes] = OrderedDict()
        self._lock = threading.Lock()

    def derive(self, password: str) -> bytes:
        fingerprint = password_fingerprint(password)
        with self._lock:
            cached = self._cache.get(fingerprint)
            if cached is not None:
                self._cache.move_to_end(fingerprint)
                return cached

        key = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self._length_bytes,
            salt=self._salt,
            iterations=self._iterations,
        ).derive(password.encode("utf-8"))

        with self._lock:
            self._cache[fingerprint] = key
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)
        return key

    def forget(self) -> None:
        """Drop every cached key (for example on logout)."""
        with self._lock:
            self._cache.clear()
