# passgate/crud/passcode.py
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, Optional

from sqlalchemy import and_, case, delete, func, not_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from passgate.core.errors import DuplicateCode, ReasonCode, StoreUnavailable
from passgate.crud.base import CredentialStore, empty_tally, failure_reason
from passgate.models.nonce import ConsumedNonce
from passgate.models.passcode import Passcode, PasscodeStatus


class SqlCredentialStore(CredentialStore):
    """CredentialStore sobre SQLAlchemy; uma sessão curta por operação."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as db:
                yield db
        except IntegrityError:
            raise
        except DBAPIError as exc:
            raise StoreUnavailable("credential store unavailable") from exc

    def create(self, passcode: Passcode) -> Passcode:
        try:
            with self._session() as db:
                db.add(passcode)
                db.flush()
                db.refresh(passcode)
                db.expunge(passcode)
        except IntegrityError:
            raise DuplicateCode(passcode.code) from None
        return passcode

    def get(self, code: str) -> Optional[Passcode]:
        with self._session() as db:
            row = db.execute(select(Passcode).where(Passcode.code == code)).scalar_one_or_none()
            if row is not None:
                db.expunge(row)
            return row

    def consume_use(self, code: str, now: datetime) -> ReasonCode:
        # check-and-increment numa única instrução condicional (CAS na linha)
        stmt = (
            update(Passcode)
            .where(
                Passcode.code == code,
                Passcode.revoked_at.is_(None),
                (Passcode.expires_at.is_(None)) | (Passcode.expires_at >= now),
                (Passcode.usage_limit.is_(None)) | (Passcode.usage_count < Passcode.usage_limit),
            )
            .values(usage_count=Passcode.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        with self._session() as db:
            if db.execute(stmt).rowcount == 1:
                return ReasonCode.OK
        return failure_reason(self.get(code), now)

    def revoke(self, code: str, now: datetime) -> bool:
        stmt = (
            update(Passcode)
            .where(Passcode.code == code, Passcode.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._session() as db:
            return db.execute(stmt).rowcount == 1

    def revoke_owner(self, owner_id: int, owner_type: str, now: datetime) -> int:
        stmt = (
            update(Passcode)
            .where(
                Passcode.owner_id == owner_id,
                Passcode.owner_type == owner_type,
                Passcode.revoked_at.is_(None),
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._session() as db:
            return db.execute(stmt).rowcount

    def nonce_consumed(self, nonce: str) -> bool:
        with self._session() as db:
            return db.get(ConsumedNonce, nonce) is not None

    def consume_nonce(self, nonce: str, owner_id: int, expires_at: datetime, now: datetime) -> bool:
        # PK do nonce garante que só um INSERT concorrente vence
        try:
            with self._session() as db:
                db.add(ConsumedNonce(nonce=nonce, owner_id=owner_id, consumed_at=now, expires_at=expires_at))
        except IntegrityError:
            return False
        return True

    def purge_nonces(self, now: datetime) -> int:
        with self._session() as db:
            return db.execute(delete(ConsumedNonce).where(ConsumedNonce.expires_at < now)).rowcount

    def current_for_owner(self, owner_id: int, owner_type: str, now: datetime) -> Optional[Passcode]:
        stmt = (
            select(Passcode)
            .where(
                Passcode.owner_id == owner_id,
                Passcode.owner_type == owner_type,
                Passcode.revoked_at.is_(None),
                (Passcode.expires_at.is_(None)) | (Passcode.expires_at >= now),
                (Passcode.usage_limit.is_(None)) | (Passcode.usage_count < Passcode.usage_limit),
            )
            .order_by(Passcode.created_at.desc(), Passcode.id.desc())
            .limit(1)
        )
        with self._session() as db:
            row = db.execute(stmt).scalar_one_or_none()
            if row is not None:
                db.expunge(row)
            return row

    def count_by_status(
        self, now: datetime, owner_id: Optional[int] = None, owner_type: Optional[str] = None
    ) -> Dict[str, int]:
        # mesma precedência de Passcode.status_at: revoked > expired > exhausted
        revoked = Passcode.revoked_at.is_not(None)
        expired = and_(Passcode.expires_at.is_not(None), Passcode.expires_at < now)
        exhausted = and_(Passcode.usage_limit.is_not(None), Passcode.usage_count >= Passcode.usage_limit)

        def tally(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        stmt = select(
            func.count(Passcode.id),
            tally(revoked),
            tally(and_(not_(revoked), expired)),
            tally(and_(not_(revoked), not_(expired), exhausted)),
        )
        if owner_id is not None:
            stmt = stmt.where(Passcode.owner_id == owner_id)
        if owner_type is not None:
            stmt = stmt.where(Passcode.owner_type == owner_type)
        with self._session() as db:
            total, n_revoked, n_expired, n_exhausted = db.execute(stmt).one()

        counts = empty_tally()
        counts.update(
            total=int(total),
            revoked=int(n_revoked),
            expired=int(n_expired),
            exhausted=int(n_exhausted),
        )
        counts[PasscodeStatus.active.value] = counts["total"] - counts["revoked"] - counts["expired"] - counts["exhausted"]
        return counts
