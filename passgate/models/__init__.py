# IMPORTE TODOS OS MODELS AQUI (Alembic e create_all dependem disso)
from passgate.models.passcode import Passcode, OwnerType, PasscodeStatus
from passgate.models.nonce import ConsumedNonce

__all__ = ["Passcode", "OwnerType", "PasscodeStatus", "ConsumedNonce"]
