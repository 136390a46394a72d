import os
from datetime import datetime, timezone

from passgate.core.clock import FixedClock
from passgate.core.keys import StaticKeyProvider
from passgate.crud.memory import MemoryCredentialStore
from passgate.services.passcodes import PasscodeIssuer
from passgate.services.qr_cipher import QRCipher
from passgate.services.validator import AccessValidator
from passgate.services.window_code import TimeWindowCoder

# início exato de uma janela de 5 minutos
T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
WINDOW = 5


class Engine:
    """Wires the components the way the API does, over in-memory state."""

    def __init__(self, store=None, clock=None, key=None):
        self.clock = clock or FixedClock(T0)
        self.store = store if store is not None else MemoryCredentialStore()
        self.key = key or os.urandom(32)
        self.cipher = QRCipher(StaticKeyProvider(self.key))
        self.coder = TimeWindowCoder()
        self.issuer = PasscodeIssuer(self.store, self.clock, self.cipher, self.coder, window_minutes=WINDOW)
        self.validator = AccessValidator(self.store, self.clock, self.cipher, self.coder, window_minutes=WINDOW)
