# passgate/api/v1/router.py
from fastapi import APIRouter
from passgate.api.v1 import access, passcodes

api_router = APIRouter()

# -------- dispositivos (sem autenticação) --------
api_router.include_router(access.router, prefix="/access", tags=["access"])
# -------- emissão/administração (Bearer) --------
api_router.include_router(passcodes.router, prefix="/access", tags=["passcodes"])
