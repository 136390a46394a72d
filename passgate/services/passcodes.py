# passgate/services/passcodes.py
from __future__ import annotations

import dataclasses
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from passgate.core.clock import Clock
from passgate.core.errors import DuplicateCode, IssuanceError
from passgate.core.metrics import PASSCODES_ISSUED
from passgate.crud.base import CredentialStore
from passgate.models.passcode import OwnerType, Passcode
from passgate.services.qr_cipher import QRCipher
from passgate.services.window_code import TimeWindowCoder, passcode_secret

logger = logging.getLogger(__name__)

# sem 0/O/1/I: 32 símbolos, 5 bits por caractere
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_PERMISSIONS = ("basic_access",)
MIN_LENGTH = 8
MAX_LENGTH = 32


@dataclass(frozen=True)
class OwnerDefaults:
    ttl: timedelta
    usage_limit: int


# funcionário: jornada de 8h; visitante: 2h e poucos usos
OWNER_DEFAULTS = {
    OwnerType.employee.value: OwnerDefaults(ttl=timedelta(minutes=480), usage_limit=50),
    OwnerType.visitor.value: OwnerDefaults(ttl=timedelta(minutes=120), usage_limit=5),
}


@dataclass
class PasscodeOptions:
    usage_limit: Optional[int] = None
    ttl: Optional[timedelta] = None
    permissions: Optional[Sequence[str]] = None
    revoke_existing: bool = False
    unlimited: bool = False  # sem limite de uso e sem expiração


@dataclass
class QRBundle:
    passcode: Passcode
    qr_content: str
    time_code: str


@dataclass
class BatchResult:
    issued: List[Passcode] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class PasscodeIssuer:
    def __init__(
        self,
        store: CredentialStore,
        clock: Clock,
        cipher: QRCipher,
        coder: TimeWindowCoder,
        *,
        length: int = 12,
        window_minutes: int = 5,
        max_attempts: int = 8,
    ):
        # coluna passcodes.code é String(32)
        if not MIN_LENGTH <= length <= MAX_LENGTH:
            raise ValueError(f"passcode length must be between {MIN_LENGTH} and {MAX_LENGTH}")
        self.store = store
        self.clock = clock
        self.cipher = cipher
        self.coder = coder
        self.length = length
        self.window_minutes = window_minutes
        self.max_attempts = max_attempts

    def draw_code(self) -> str:
        return "".join(secrets.choice(ALPHABET) for _ in range(self.length))

    def _resolve(self, owner_type: str, options: PasscodeOptions) -> tuple[Optional[datetime], Optional[int]]:
        if owner_type not in OWNER_DEFAULTS:
            raise ValueError(f"unknown owner type: {owner_type!r}")
        if options.usage_limit is not None and options.usage_limit < 1:
            raise ValueError("usage_limit must be >= 1")
        if options.ttl is not None and options.ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if options.unlimited:
            return None, None
        defaults = OWNER_DEFAULTS[owner_type]
        ttl = options.ttl if options.ttl is not None else defaults.ttl
        usage_limit = options.usage_limit if options.usage_limit is not None else defaults.usage_limit
        return self.clock.now() + ttl, usage_limit

    def generate(self, owner_id: int, owner_type: str, options: Optional[PasscodeOptions] = None) -> Passcode:
        options = options or PasscodeOptions()
        expires_at, usage_limit = self._resolve(owner_type, options)
        now = self.clock.now()
        if options.revoke_existing:
            revoked = self.store.revoke_owner(owner_id, owner_type, now)
            logger.info("revoked %d passcode(s) owner_type=%s owner_id=%s", revoked, owner_type, owner_id)
        permissions = list(options.permissions) if options.permissions is not None else list(DEFAULT_PERMISSIONS)

        for attempt in range(1, self.max_attempts + 1):
            code = self.draw_code()
            # colisão é improvável, mas nunca gravamos duplicado
            if self.store.exists(code):
                logger.warning("passcode collision on draw %d, redrawing", attempt)
                continue
            row = Passcode(
                code=code,
                owner_id=owner_id,
                owner_type=owner_type,
                permissions=permissions,
                created_at=now,
                expires_at=expires_at,
                usage_limit=usage_limit,
                usage_count=0,
                revoked_at=None,
            )
            try:
                created = self.store.create(row)
            except DuplicateCode:
                logger.warning("passcode collision on insert %d, redrawing", attempt)
                continue
            PASSCODES_ISSUED.labels(owner_type=owner_type).inc()
            logger.info("passcode issued owner_type=%s owner_id=%s", owner_type, owner_id)
            return created
        raise IssuanceError("could not draw a unique passcode")

    def window_code(self, code: str, at: Optional[datetime] = None) -> str:
        return self.coder.derive(passcode_secret(code), self.window_minutes, at or self.clock.now())

    def issue_qr(
        self,
        owner_id: int,
        owner_type: str,
        *,
        expires_at: datetime,
        permissions: Sequence[str] = DEFAULT_PERMISSIONS,
    ) -> str:
        if owner_type not in OWNER_DEFAULTS:
            raise ValueError(f"unknown owner type: {owner_type!r}")
        payload = self.cipher.new_payload(
            owner_id=owner_id,
            owner_type=owner_type,
            expires_at=expires_at,
            issued_at=self.clock.now(),
            permissions=permissions,
        )
        return self.cipher.encrypt(payload)

    def generate_qr(self, owner_id: int, owner_type: str, options: Optional[PasscodeOptions] = None) -> QRBundle:
        """Passcode + QR espelhando dono/expiração/permissões + código da janela atual."""
        passcode = self.generate(owner_id, owner_type, options)
        # passcode sem expiração: o QR ainda precisa de um prazo
        expires_at = passcode.expires_at or (self.clock.now() + OWNER_DEFAULTS[owner_type].ttl)
        qr_content = self.issue_qr(owner_id, owner_type, expires_at=expires_at, permissions=passcode.permissions)
        return QRBundle(passcode=passcode, qr_content=qr_content, time_code=self.window_code(passcode.code))

    def refresh(self, owner_id: int, owner_type: str, options: Optional[PasscodeOptions] = None) -> Passcode:
        options = dataclasses.replace(options or PasscodeOptions(), revoke_existing=True)
        return self.generate(owner_id, owner_type, options)

    def revoke(self, code: str) -> bool:
        return self.store.revoke(code, self.clock.now())

    def current(self, owner_id: int, owner_type: str) -> Optional[Passcode]:
        return self.store.current_for_owner(owner_id, owner_type, self.clock.now())

    def batch_generate(
        self, owner_ids: Sequence[int], owner_type: str, options: Optional[PasscodeOptions] = None
    ) -> BatchResult:
        """Um passcode por dono; falha de emissão de um dono não interrompe os demais."""
        options = options or PasscodeOptions()
        # argumentos inválidos valem para o lote inteiro
        self._resolve(owner_type, options)
        result = BatchResult()
        for owner_id in owner_ids:
            try:
                result.issued.append(self.generate(owner_id, owner_type, options))
            except IssuanceError:
                logger.warning("batch issuance failed owner_type=%s owner_id=%s", owner_type, owner_id)
                result.failed.append(owner_id)
        return result

    def statistics(self, owner_id: Optional[int] = None, owner_type: Optional[str] = None) -> Dict[str, int]:
        return self.store.count_by_status(self.clock.now(), owner_id=owner_id, owner_type=owner_type)
