# passgate/services/validator.py
"""Validação de acesso nos dispositivos de entrada.

Três caminhos (código simples, código de janela, QR cifrado), todos
terminando num `ValidationResult`. Falha de validação é dado, não exceção:
o chamador sempre recebe uma resposta normal com uma mensagem do vocabulário
fixo abaixo. O motivo real (`ReasonCode`) só vai para log e métricas.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from passgate.core.clock import Clock
from passgate.core.errors import ReasonCode, TamperError
from passgate.core.metrics import VALIDATIONS
from passgate.crud.base import STATUS_REASON, CredentialStore
from passgate.models.passcode import PasscodeStatus
from passgate.services.passcodes import ALPHABET
from passgate.services.qr_cipher import QRCipher
from passgate.services.window_code import TimeWindowCoder, passcode_secret

logger = logging.getLogger(__name__)

MSG_GRANTED = "access granted"
MSG_NOT_FOUND = "credential not found"
MSG_EXPIRED = "credential expired"
MSG_REVOKED = "credential revoked"
MSG_EXHAUSTED = "usage limit reached"
MSG_QR_INVALID = "QR invalid"
MSG_QR_EXPIRED = "QR expired"
MSG_DENIED = "permission denied"

_CODE_MESSAGES = {
    ReasonCode.NOT_FOUND: MSG_NOT_FOUND,
    ReasonCode.WINDOW_MISMATCH: MSG_NOT_FOUND,
    ReasonCode.EXPIRED: MSG_EXPIRED,
    ReasonCode.REVOKED: MSG_REVOKED,
    ReasonCode.EXHAUSTED: MSG_EXHAUSTED,
}

_ALPHABET = frozenset(ALPHABET)
MIN_CODE_LENGTH = 8
BASIC_PERMISSIONS = frozenset({"basic", "basic_access"})


@dataclass
class ValidationResult:
    success: bool
    message: str
    reason: ReasonCode
    owner_id: Optional[int] = None
    owner_type: Optional[str] = None
    permissions: List[str] = field(default_factory=list)

    def public(self) -> dict:
        return {"success": self.success, "message": self.message}


def required_permissions(direction: str) -> FrozenSet[str]:
    return BASIC_PERMISSIONS | {f"access:{direction}"}


class AccessValidator:
    def __init__(
        self,
        store: CredentialStore,
        clock: Clock,
        cipher: QRCipher,
        coder: TimeWindowCoder,
        *,
        window_minutes: int = 5,
        max_code_length: int = 64,
    ):
        self.store = store
        self.clock = clock
        self.cipher = cipher
        self.coder = coder
        self.window_minutes = window_minutes
        self.max_code_length = max_code_length

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _well_formed(self, code) -> bool:
        if not isinstance(code, str):
            return False
        if not MIN_CODE_LENGTH <= len(code) <= self.max_code_length:
            return False
        return all(ch in _ALPHABET for ch in code)

    def _finish(self, path: str, result: ValidationResult, device_id: str, direction: str) -> ValidationResult:
        VALIDATIONS.labels(path=path, reason=result.reason.value).inc()
        if result.success:
            logger.info("access granted path=%s device=%s direction=%s owner_type=%s owner_id=%s",
                        path, device_id, direction, result.owner_type, result.owner_id)
        else:
            logger.warning("access denied path=%s device=%s direction=%s reason=%s",
                           path, device_id, direction, result.reason.value)
        return result

    @staticmethod
    def _code_failure(reason: ReasonCode) -> ValidationResult:
        return ValidationResult(False, _CODE_MESSAGES.get(reason, MSG_NOT_FOUND), reason)

    # ------------------------------------------------------------------
    # código simples: Lookup -> CheckRevoked -> CheckExpiry -> CheckUsage -> Commit
    # ------------------------------------------------------------------
    def _check_code(self, code) -> ValidationResult:
        if not self._well_formed(code):
            return self._code_failure(ReasonCode.NOT_FOUND)
        row = self.store.get(code)
        if row is None:
            return self._code_failure(ReasonCode.NOT_FOUND)
        now = self.clock.now()
        status = row.status_at(now)
        if status is not PasscodeStatus.active:
            return self._code_failure(STATUS_REASON[status])
        # a leitura acima só antecipa a recusa; quem decide é o update condicional
        reason = self.store.consume_use(code, now)
        if reason is not ReasonCode.OK:
            return self._code_failure(reason)
        return ValidationResult(True, MSG_GRANTED, ReasonCode.OK,
                                owner_id=row.owner_id, owner_type=row.owner_type,
                                permissions=list(row.permissions or []))

    def validate_code(self, code: str, device_id: str, direction: str = "in") -> ValidationResult:
        return self._finish("code", self._check_code(code), device_id, direction)

    def validate_time_code(self, time_code: str, code: str, device_id: str, direction: str = "in") -> ValidationResult:
        if not self._well_formed(code):
            result = self._code_failure(ReasonCode.NOT_FOUND)
        elif not self.coder.validate(time_code, passcode_secret(code), self.window_minutes, self.clock.now()):
            result = self._code_failure(ReasonCode.WINDOW_MISMATCH)
        else:
            result = self._check_code(code)
        return self._finish("timecode", result, device_id, direction)

    # ------------------------------------------------------------------
    # QR: Decrypt -> CheckExpiry -> CheckNonce -> CheckPermission -> Commit
    # ------------------------------------------------------------------
    def _check_qr(self, token, direction: str) -> ValidationResult:
        now = self.clock.now()
        try:
            payload = self.cipher.decrypt(token, at=now)
        except TamperError as exc:
            # só chega em EXPIRED quem decifrou um token legítimo
            if exc.reason is ReasonCode.EXPIRED:
                return ValidationResult(False, MSG_QR_EXPIRED, ReasonCode.EXPIRED)
            return ValidationResult(False, MSG_QR_INVALID, exc.reason)

        if self.store.nonce_consumed(payload.nonce):
            return ValidationResult(False, MSG_QR_INVALID, ReasonCode.REPLAY)

        if not required_permissions(direction) & set(payload.permissions):
            return ValidationResult(False, MSG_DENIED, ReasonCode.PERMISSION_DENIED,
                                    owner_id=payload.owner_id, owner_type=payload.owner_type)

        if not self.store.consume_nonce(payload.nonce, payload.owner_id, payload.expires_at_dt, now):
            return ValidationResult(False, MSG_QR_INVALID, ReasonCode.REPLAY)

        return ValidationResult(True, MSG_GRANTED, ReasonCode.OK,
                                owner_id=payload.owner_id, owner_type=payload.owner_type,
                                permissions=list(payload.permissions))

    def validate_qr(self, token: str, device_id: str, direction: str = "in") -> ValidationResult:
        return self._finish("qr", self._check_qr(token, direction), device_id, direction)
