# passgate/crud/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

from passgate.core.errors import ReasonCode
from passgate.models.passcode import Passcode, PasscodeStatus

STATUS_REASON = {
    PasscodeStatus.revoked: ReasonCode.REVOKED,
    PasscodeStatus.expired: ReasonCode.EXPIRED,
    PasscodeStatus.exhausted: ReasonCode.EXHAUSTED,
}


def failure_reason(row: Optional[Passcode], now: datetime) -> ReasonCode:
    """Why a conditional consume did not land, from a fresh read of the row."""
    if row is None:
        return ReasonCode.NOT_FOUND
    # linha "active" aqui = outra requisição levou o último uso entre a leitura e o update
    return STATUS_REASON.get(row.status_at(now), ReasonCode.EXHAUSTED)


class CredentialStore(ABC):
    """Porta de armazenamento das credenciais.

    Toda operação que decide e grava (uso do passcode, registro do nonce) é
    atômica e restrita à própria credencial; nada aqui trava o store inteiro.
    """

    @abstractmethod
    def create(self, passcode: Passcode) -> Passcode:
        """Persist a new passcode; raises DuplicateCode if the code is taken."""

    @abstractmethod
    def get(self, code: str) -> Optional[Passcode]: ...

    def exists(self, code: str) -> bool:
        return self.get(code) is not None

    @abstractmethod
    def consume_use(self, code: str, now: datetime) -> ReasonCode:
        """Test-and-increment usage_count in one step; ReasonCode.OK on success."""

    @abstractmethod
    def revoke(self, code: str, now: datetime) -> bool: ...

    @abstractmethod
    def revoke_owner(self, owner_id: int, owner_type: str, now: datetime) -> int: ...

    @abstractmethod
    def nonce_consumed(self, nonce: str) -> bool: ...

    @abstractmethod
    def consume_nonce(self, nonce: str, owner_id: int, expires_at: datetime, now: datetime) -> bool:
        """Record the nonce; False if it was already recorded."""

    @abstractmethod
    def purge_nonces(self, now: datetime) -> int:
        """Drop nonces whose payload expired before `now`."""

    @abstractmethod
    def current_for_owner(self, owner_id: int, owner_type: str, now: datetime) -> Optional[Passcode]:
        """Newest passcode of the owner that is still active at `now`."""

    @abstractmethod
    def count_by_status(
        self, now: datetime, owner_id: Optional[int] = None, owner_type: Optional[str] = None
    ) -> Dict[str, int]:
        """Totals per derived status, plus "total"."""


def empty_tally() -> Dict[str, int]:
    return {"total": 0, **{status.value: 0 for status in PasscodeStatus}}
