# passgate/schemas/qr.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def to_epoch_ms(at: datetime) -> int:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return int(at.timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class QRPayload(BaseModel):
    """Conteúdo cifrado dentro do QR. Nunca é persistido."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    owner_id: int
    owner_type: Literal["employee", "visitor"]
    expires_at: int  # epoch ms (UTC)
    issued_at: int
    permissions: List[str] = Field(default_factory=list)
    nonce: str = Field(pattern=r"^[0-9a-f]{32}$")

    @field_validator("permissions")
    @classmethod
    def _canonical_permissions(cls, value: List[str]) -> List[str]:
        return sorted(set(value))

    @property
    def expires_at_dt(self) -> datetime:
        return from_epoch_ms(self.expires_at)

    def is_expired(self, now: datetime) -> bool:
        return to_epoch_ms(now) > self.expires_at
