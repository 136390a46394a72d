# passgate/services/qr_cipher.py
from __future__ import annotations

import json
import os
import re
import secrets
from datetime import datetime
from typing import Iterable, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from passgate.core.errors import ReasonCode, TamperError
from passgate.core.keys import KeyProvider
from passgate.schemas.qr import QRPayload, to_epoch_ms

IV_BYTES = 16
IV_HEX_LEN = IV_BYTES * 2
TAG_BYTES = 16
SEPARATOR = ":"
AAD = b"passgate.qr.v1"
DEFAULT_MAX_TOKEN_LENGTH = 2048

_HEX = re.compile(r"[0-9a-f]+")


def canonical_bytes(payload: QRPayload) -> bytes:
    return json.dumps(payload.model_dump(), sort_keys=True, separators=(",", ":")).encode("utf-8")


class QRCipher:
    """AES-256-GCM sobre o payload do QR; formato `hex(iv):hex(ciphertext||tag)`.

    Qualquer falha vira `TamperError` com a mesma mensagem pública; só o
    `reason` (interno) diferencia estrutura, decifragem, payload e expiração.
    """

    def __init__(self, key_provider: KeyProvider, max_token_length: int = DEFAULT_MAX_TOKEN_LENGTH):
        self._keys = key_provider
        self.max_token_length = max_token_length

    @staticmethod
    def new_payload(
        *,
        owner_id: int,
        owner_type: str,
        expires_at: datetime,
        issued_at: datetime,
        permissions: Iterable[str] = (),
    ) -> QRPayload:
        return QRPayload(
            owner_id=owner_id,
            owner_type=owner_type,
            expires_at=to_epoch_ms(expires_at),
            issued_at=to_epoch_ms(issued_at),
            permissions=list(permissions),
            nonce=secrets.token_hex(16),
        )

    def encrypt(self, payload: QRPayload, key: Optional[bytes] = None) -> str:
        # IV novo a cada chamada, direto do CSPRNG do SO
        iv = os.urandom(IV_BYTES)
        ciphertext = AESGCM(key or self._keys.qr_key()).encrypt(iv, canonical_bytes(payload), AAD)
        return f"{iv.hex()}{SEPARATOR}{ciphertext.hex()}"

    def _split(self, token) -> tuple[bytes, bytes]:
        if not isinstance(token, str) or not token or len(token) > self.max_token_length:
            raise TamperError(ReasonCode.MALFORMED)
        if token.count(SEPARATOR) != 1:
            raise TamperError(ReasonCode.MALFORMED)
        iv_hex, ct_hex = token.split(SEPARATOR)
        if len(iv_hex) != IV_HEX_LEN or not ct_hex:
            raise TamperError(ReasonCode.MALFORMED)
        if not _HEX.fullmatch(iv_hex) or not _HEX.fullmatch(ct_hex) or len(ct_hex) % 2:
            raise TamperError(ReasonCode.MALFORMED)
        ciphertext = bytes.fromhex(ct_hex)
        if len(ciphertext) <= TAG_BYTES:
            raise TamperError(ReasonCode.MALFORMED)
        return bytes.fromhex(iv_hex), ciphertext

    def decrypt(self, token: str, key: Optional[bytes] = None, at: Optional[datetime] = None) -> QRPayload:
        iv, ciphertext = self._split(token)
        try:
            plain = AESGCM(key or self._keys.qr_key()).decrypt(iv, ciphertext, AAD)
        except InvalidTag:
            raise TamperError(ReasonCode.DECRYPT_FAILED) from None
        try:
            payload = QRPayload.model_validate_json(plain)
        except ValidationError:
            raise TamperError(ReasonCode.BAD_PAYLOAD) from None
        if at is not None and payload.is_expired(at):
            raise TamperError(ReasonCode.EXPIRED)
        return payload
