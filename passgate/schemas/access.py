# passgate/schemas/access.py
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

Direction = Literal["in", "out"]

class _DeviceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(alias="deviceId", min_length=1, max_length=128)
    direction: Direction = "in"

# code/qrContent sem limite de tamanho aqui: entradas absurdas viram
# "credential not found"/"QR invalid" no validador, não 422.
class ValidateCodeIn(_DeviceRequest):
    code: str

class ValidateQRIn(_DeviceRequest):
    qr_content: str = Field(alias="qrContent")

class ValidateTimeCodeIn(_DeviceRequest):
    time_code: str = Field(alias="timeCode")
    code: str

class ValidationOut(BaseModel):
    success: bool
    message: str
