# passgate/api/v1/access.py
# Endpoints dos dispositivos. Sempre 200 para corpo bem formado:
# recusa de acesso é resultado, não erro HTTP.
from fastapi import APIRouter, Body, Depends

from passgate.api.deps import get_validator
from passgate.schemas.access import ValidateCodeIn, ValidateQRIn, ValidateTimeCodeIn, ValidationOut
from passgate.services.validator import AccessValidator

router = APIRouter()

@router.post("/validate", response_model=ValidationOut)
def validate_code(body: ValidateCodeIn = Body(...), validator: AccessValidator = Depends(get_validator)):
    return validator.validate_code(body.code, body.device_id, body.direction).public()

@router.post("/validate/qr", response_model=ValidationOut)
def validate_qr(body: ValidateQRIn = Body(...), validator: AccessValidator = Depends(get_validator)):
    return validator.validate_qr(body.qr_content, body.device_id, body.direction).public()

@router.post("/validate/timecode", response_model=ValidationOut)
def validate_time_code(body: ValidateTimeCodeIn = Body(...), validator: AccessValidator = Depends(get_validator)):
    return validator.validate_time_code(body.time_code, body.code, body.device_id, body.direction).public()
