# passgate/models/passcode.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import JSON, DateTime, Integer, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from passgate.core.clock import as_utc
from passgate.db.base import Base


class OwnerType(str, Enum):
    employee = "employee"
    visitor = "visitor"


class PasscodeStatus(str, Enum):
    active = "active"
    exhausted = "exhausted"
    expired = "expired"
    revoked = "revoked"


class Passcode(Base):
    __tablename__ = "passcodes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    owner_type: Mapped[str] = mapped_column(String(20))
    permissions: Mapped[List[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    # único estado persistido; os demais são derivados
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("owner_type IN ('employee', 'visitor')", name="owner_type"),
        CheckConstraint("usage_limit IS NULL OR usage_count <= usage_limit", name="usage_within_limit"),
    )

    def is_expired(self, now: datetime) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and now > expires_at

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def status_at(self, now: datetime) -> PasscodeStatus:
        if self.revoked_at is not None:
            return PasscodeStatus.revoked
        if self.is_expired(now):
            return PasscodeStatus.expired
        if self.is_exhausted():
            return PasscodeStatus.exhausted
        return PasscodeStatus.active
