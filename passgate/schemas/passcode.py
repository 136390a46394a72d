# passgate/schemas/passcode.py
from __future__ import annotations
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

OwnerTypeName = Literal["employee", "visitor"]

class PasscodeCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: int = Field(alias="ownerId")
    owner_type: OwnerTypeName = Field(alias="ownerType")
    usage_limit: Optional[int] = Field(default=None, alias="usageLimit", ge=1)
    ttl_minutes: Optional[int] = Field(default=None, alias="ttlMinutes", ge=1)
    permissions: Optional[List[str]] = None
    revoke_existing: bool = Field(default=False, alias="revokeExisting")
    unlimited: bool = False

class QRCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: int = Field(alias="ownerId")
    owner_type: OwnerTypeName = Field(alias="ownerType")
    ttl_minutes: int = Field(default=5, alias="ttlMinutes", ge=1, le=24 * 60)
    permissions: List[str] = Field(default_factory=lambda: ["basic_access"])

class PasscodeOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    owner_id: int = Field(serialization_alias="ownerId")
    owner_type: str = Field(serialization_alias="ownerType")
    status: str
    permissions: List[str] = []
    created_at: datetime = Field(serialization_alias="createdAt")
    expires_at: Optional[datetime] = Field(default=None, serialization_alias="expiresAt")
    usage_limit: Optional[int] = Field(default=None, serialization_alias="usageLimit")
    usage_count: int = Field(serialization_alias="usageCount")

class QRBundleOut(BaseModel):
    passcode: PasscodeOut
    qr_content: str = Field(serialization_alias="qrContent")
    time_code: str = Field(serialization_alias="timeCode")
    qr_image: str = Field(serialization_alias="qrImage")

class QROut(BaseModel):
    qr_content: str = Field(serialization_alias="qrContent")
    expires_at: datetime = Field(serialization_alias="expiresAt")

class PasscodeBatchCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_ids: List[int] = Field(alias="ownerIds", min_length=1, max_length=500)
    owner_type: OwnerTypeName = Field(alias="ownerType")
    usage_limit: Optional[int] = Field(default=None, alias="usageLimit", ge=1)
    ttl_minutes: Optional[int] = Field(default=None, alias="ttlMinutes", ge=1)
    permissions: Optional[List[str]] = None
    revoke_existing: bool = Field(default=False, alias="revokeExisting")
    unlimited: bool = False

class PasscodeBatchOut(BaseModel):
    issued: List[PasscodeOut]
    failed: List[int] = []

class PasscodeStatsOut(BaseModel):
    total: int
    active: int
    exhausted: int
    expired: int
    revoked: int
