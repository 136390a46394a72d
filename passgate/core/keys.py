# passgate/core/keys.py
from __future__ import annotations

import threading
from typing import Protocol

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from passgate.core.config import settings

KEY_BYTES = 32


class KeyProvider(Protocol):
    def qr_key(self) -> bytes: ...


class StaticKeyProvider:
    def __init__(self, key: bytes):
        if len(key) != KEY_BYTES:
            raise ValueError(f"QR key must be {KEY_BYTES} bytes")
        self._key = key

    def qr_key(self) -> bytes:
        return self._key


class ScryptKeyProvider:
    """Deriva a chave AES-256 a partir do segredo configurado (uma vez por processo)."""

    def __init__(self, secret: str | None = None, salt: str | None = None):
        self._secret = (secret or settings.QR_SECRET_KEY).encode()
        self._salt = (salt or settings.QR_KEY_SALT).encode()
        self._key: bytes | None = None
        self._lock = threading.Lock()

    def qr_key(self) -> bytes:
        if self._key is None:
            with self._lock:
                if self._key is None:
                    kdf = Scrypt(salt=self._salt, length=KEY_BYTES, n=2**14, r=8, p=1)
                    self._key = kdf.derive(self._secret)
        return self._key
