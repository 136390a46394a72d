# passgate/crud/memory.py
from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, Optional

from passgate.core.clock import as_utc
from passgate.core.errors import DuplicateCode, ReasonCode
from passgate.crud.base import CredentialStore, empty_tally, failure_reason
from passgate.models.passcode import Passcode, PasscodeStatus


class KeyedLocks:
    """One lock per key, kept only while someone holds or waits on it.

    The registry lock only guards the table; an entry leaves it when its last
    user releases.
    """

    def __init__(self):
        self._registry = threading.Lock()
        self._locks: Dict[str, list] = {}  # key -> [lock, usuários]

    @contextmanager
    def __call__(self, key: str) -> Iterator[None]:
        with self._registry:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._registry:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._registry:
            return len(self._locks)


def _snapshot(row: Passcode) -> Passcode:
    return Passcode(
        id=row.id,
        code=row.code,
        owner_id=row.owner_id,
        owner_type=row.owner_type,
        permissions=list(row.permissions or []),
        created_at=row.created_at,
        expires_at=row.expires_at,
        usage_limit=row.usage_limit,
        usage_count=row.usage_count,
        revoked_at=row.revoked_at,
    )


class MemoryCredentialStore(CredentialStore):
    """Store em memória do processo (testes e desenvolvimento em nó único)."""

    def __init__(self):
        self._rows: Dict[str, Passcode] = {}
        self._nonces: Dict[str, datetime] = {}
        self._ids = itertools.count(1)
        self._code_locks = KeyedLocks()
        self._nonce_locks = KeyedLocks()

    def create(self, passcode: Passcode) -> Passcode:
        with self._code_locks(passcode.code):
            if passcode.code in self._rows:
                raise DuplicateCode(passcode.code)
            passcode.id = next(self._ids)
            if passcode.usage_count is None:
                passcode.usage_count = 0
            if passcode.permissions is None:
                passcode.permissions = []
            self._rows[passcode.code] = _snapshot(passcode)
        return passcode

    def get(self, code: str) -> Optional[Passcode]:
        row = self._rows.get(code)
        return _snapshot(row) if row is not None else None

    def consume_use(self, code: str, now: datetime) -> ReasonCode:
        row = self._rows.get(code)
        if row is None:
            return ReasonCode.NOT_FOUND
        with self._code_locks(code):
            if row.revoked_at is not None or row.is_expired(now) or row.is_exhausted():
                return failure_reason(row, now)
            row.usage_count += 1
        return ReasonCode.OK

    def revoke(self, code: str, now: datetime) -> bool:
        row = self._rows.get(code)
        if row is None:
            return False
        with self._code_locks(code):
            if row.revoked_at is not None:
                return False
            row.revoked_at = now
            return True

    def revoke_owner(self, owner_id: int, owner_type: str, now: datetime) -> int:
        codes = [r.code for r in list(self._rows.values())
                 if r.owner_id == owner_id and r.owner_type == owner_type]
        return sum(1 for code in codes if self.revoke(code, now))

    def nonce_consumed(self, nonce: str) -> bool:
        return nonce in self._nonces

    def consume_nonce(self, nonce: str, owner_id: int, expires_at: datetime, now: datetime) -> bool:
        with self._nonce_locks(nonce):
            if nonce in self._nonces:
                return False
            self._nonces[nonce] = as_utc(expires_at)
            return True

    def purge_nonces(self, now: datetime) -> int:
        purged = 0
        for nonce, expires_at in list(self._nonces.items()):
            if expires_at >= now:
                continue
            with self._nonce_locks(nonce):
                if self._nonces.pop(nonce, None) is not None:
                    purged += 1
        return purged

    def current_for_owner(self, owner_id: int, owner_type: str, now: datetime) -> Optional[Passcode]:
        live = [r for r in list(self._rows.values())
                if r.owner_id == owner_id and r.owner_type == owner_type
                and r.status_at(now) is PasscodeStatus.active]
        if not live:
            return None
        return _snapshot(max(live, key=lambda r: (as_utc(r.created_at), r.id)))

    def count_by_status(
        self, now: datetime, owner_id: Optional[int] = None, owner_type: Optional[str] = None
    ) -> Dict[str, int]:
        tally = empty_tally()
        for row in list(self._rows.values()):
            if owner_id is not None and row.owner_id != owner_id:
                continue
            if owner_type is not None and row.owner_type != owner_type:
                continue
            tally["total"] += 1
            tally[row.status_at(now).value] += 1
        return tally
