# passgate/api/deps.py
from functools import lru_cache

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

from passgate.core.clock import Clock, SystemClock
from passgate.core.config import settings
from passgate.core.keys import ScryptKeyProvider
from passgate.core.tokens import decode_access
from passgate.crud.base import CredentialStore
from passgate.crud.passcode import SqlCredentialStore
from passgate.db.session import SessionLocal
from passgate.services.passcodes import PasscodeIssuer
from passgate.services.qr_cipher import QRCipher
from passgate.services.validator import AccessValidator
from passgate.services.window_code import TimeWindowCoder

# ----------------------------------------------------------------------
# Componentes do motor (testes substituem via dependency_overrides)
# ----------------------------------------------------------------------
@lru_cache
def get_clock() -> Clock:
    return SystemClock()

@lru_cache
def get_store() -> CredentialStore:
    return SqlCredentialStore(SessionLocal)

@lru_cache
def get_cipher() -> QRCipher:
    return QRCipher(ScryptKeyProvider(), max_token_length=settings.MAX_QR_TOKEN_LENGTH)

@lru_cache
def get_coder() -> TimeWindowCoder:
    return TimeWindowCoder()

def get_validator(
    store: CredentialStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    cipher: QRCipher = Depends(get_cipher),
    coder: TimeWindowCoder = Depends(get_coder),
) -> AccessValidator:
    return AccessValidator(
        store, clock, cipher, coder,
        window_minutes=settings.WINDOW_MINUTES,
        max_code_length=settings.MAX_CODE_LENGTH,
    )

def get_issuer(
    store: CredentialStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    cipher: QRCipher = Depends(get_cipher),
    coder: TimeWindowCoder = Depends(get_coder),
) -> PasscodeIssuer:
    return PasscodeIssuer(
        store, clock, cipher, coder,
        length=settings.PASSCODE_LENGTH,
        window_minutes=settings.WINDOW_MINUTES,
        max_attempts=settings.ISSUE_MAX_ATTEMPTS,
    )

# ----------------------------------------------------------------------
# Lê o Bearer do header Authorization (sem usar OAuth2PasswordBearer)
# ----------------------------------------------------------------------
class Principal(BaseModel):
    sub: str
    scope: str = ""

def get_bearer_token(authorization: str = Header(None, alias="Authorization")) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return parts[1]

def get_current_principal(token: str = Depends(get_bearer_token)) -> Principal:
    payload = decode_access(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")
    return Principal(sub=str(payload["sub"]), scope=payload.get("scope") or "")
