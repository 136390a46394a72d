# passgate/api/v1/passcodes.py
from __future__ import annotations

from datetime import timedelta
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from passgate.api.deps import get_clock, get_current_principal, get_issuer, get_store
from passgate.core.clock import Clock, as_utc
from passgate.crud.base import CredentialStore
from passgate.models.passcode import Passcode
from passgate.schemas.passcode import (
    OwnerTypeName, PasscodeBatchCreate, PasscodeBatchOut, PasscodeCreate, PasscodeOut,
    PasscodeStatsOut, QRBundleOut, QRCreate, QROut,
)
from passgate.services.passcodes import PasscodeIssuer, PasscodeOptions
from passgate.services.qr_image import qr_data_uri

router = APIRouter(dependencies=[Depends(get_current_principal)])

def _options(body: Union[PasscodeCreate, PasscodeBatchCreate]) -> PasscodeOptions:
    return PasscodeOptions(
        usage_limit=body.usage_limit,
        ttl=timedelta(minutes=body.ttl_minutes) if body.ttl_minutes else None,
        permissions=body.permissions,
        revoke_existing=body.revoke_existing,
        unlimited=body.unlimited,
    )

def passcode_out(row: Passcode, clock: Clock) -> PasscodeOut:
    return PasscodeOut(
        code=row.code,
        owner_id=row.owner_id,
        owner_type=row.owner_type,
        status=row.status_at(clock.now()).value,
        permissions=list(row.permissions or []),
        created_at=as_utc(row.created_at),
        expires_at=as_utc(row.expires_at),
        usage_limit=row.usage_limit,
        usage_count=row.usage_count,
    )

@router.post("/passcodes", response_model=PasscodeOut, status_code=201)
def create_passcode(
    body: PasscodeCreate = Body(...),
    issuer: PasscodeIssuer = Depends(get_issuer),
    clock: Clock = Depends(get_clock),
):
    row = issuer.generate(body.owner_id, body.owner_type, _options(body))
    return passcode_out(row, clock)

@router.post("/passcodes/qr", response_model=QRBundleOut, status_code=201)
def create_passcode_with_qr(
    body: PasscodeCreate = Body(...),
    issuer: PasscodeIssuer = Depends(get_issuer),
    clock: Clock = Depends(get_clock),
):
    bundle = issuer.generate_qr(body.owner_id, body.owner_type, _options(body))
    return QRBundleOut(
        passcode=passcode_out(bundle.passcode, clock),
        qr_content=bundle.qr_content,
        time_code=bundle.time_code,
        qr_image=qr_data_uri(bundle.qr_content),
    )

@router.post("/passcodes/batch", response_model=PasscodeBatchOut, status_code=201)
def create_passcode_batch(
    body: PasscodeBatchCreate = Body(...),
    issuer: PasscodeIssuer = Depends(get_issuer),
    clock: Clock = Depends(get_clock),
):
    result = issuer.batch_generate(body.owner_ids, body.owner_type, _options(body))
    return PasscodeBatchOut(issued=[passcode_out(row, clock) for row in result.issued], failed=result.failed)

@router.post("/qr", response_model=QROut, status_code=201)
def create_qr(
    body: QRCreate = Body(...),
    issuer: PasscodeIssuer = Depends(get_issuer),
    clock: Clock = Depends(get_clock),
):
    expires_at = clock.now() + timedelta(minutes=body.ttl_minutes)
    token = issuer.issue_qr(body.owner_id, body.owner_type, expires_at=expires_at, permissions=body.permissions)
    return QROut(qr_content=token, expires_at=expires_at)

# antes de /passcodes/{code} para "stats" não cair no path param
@router.get("/passcodes/stats", response_model=PasscodeStatsOut)
def passcode_stats(
    owner_id: Optional[int] = Query(None, alias="ownerId"),
    owner_type: Optional[OwnerTypeName] = Query(None, alias="ownerType"),
    issuer: PasscodeIssuer = Depends(get_issuer),
):
    return PasscodeStatsOut(**issuer.statistics(owner_id=owner_id, owner_type=owner_type))

@router.get("/passcodes/{code}", response_model=PasscodeOut)
def get_passcode(code: str, store: CredentialStore = Depends(get_store), clock: Clock = Depends(get_clock)):
    row = store.get(code)
    if not row:
        raise HTTPException(status_code=404, detail="Passcode not found")
    return passcode_out(row, clock)

@router.post("/passcodes/{code}/revoke")
def revoke_passcode(code: str, issuer: PasscodeIssuer = Depends(get_issuer)):
    return {"revoked": issuer.revoke(code)}

@router.get("/owners/{owner_type}/{owner_id}/passcode", response_model=PasscodeOut)
def current_owner_passcode(
    owner_type: OwnerTypeName,
    owner_id: int,
    issuer: PasscodeIssuer = Depends(get_issuer),
    clock: Clock = Depends(get_clock),
):
    row = issuer.current(owner_id, owner_type)
    if not row:
        raise HTTPException(status_code=404, detail="No active passcode")
    return passcode_out(row, clock)

@router.post("/owners/{owner_type}/{owner_id}/refresh", response_model=PasscodeOut, status_code=201)
def refresh_owner_passcode(
    owner_type: OwnerTypeName,
    owner_id: int,
    issuer: PasscodeIssuer = Depends(get_issuer),
    clock: Clock = Depends(get_clock),
):
    return passcode_out(issuer.refresh(owner_id, owner_type), clock)

@router.post("/maintenance/purge-nonces")
def purge_nonces(
    store: CredentialStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    return {"purged": store.purge_nonces(clock.now())}
