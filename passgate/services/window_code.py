# passgate/services/window_code.py
import hmac, hashlib
from datetime import datetime


class TimeWindowCoder:
    """Códigos derivados por janela de tempo (estilo TOTP).

    A janela corrente e a imediatamente anterior são aceitas; nada à frente.
    """

    def __init__(self, digits: int = 16):
        if not 4 <= digits <= 64:
            raise ValueError("digits must be between 4 and 64")
        self.digits = digits

    @staticmethod
    def window_index(window_minutes: int, at: datetime) -> int:
        if window_minutes < 1:
            raise ValueError("window_minutes must be >= 1")
        unix_minutes = int(at.timestamp() // 60)
        return unix_minutes // window_minutes

    def _code_for(self, secret: bytes, index: int) -> str:
        mac = hmac.new(secret, str(index).encode("ascii"), hashlib.sha256)
        return mac.hexdigest().upper()[: self.digits]

    def derive(self, secret: bytes, window_minutes: int, at: datetime) -> str:
        return self._code_for(secret, self.window_index(window_minutes, at))

    def validate(self, candidate: str, secret: bytes, window_minutes: int, at: datetime) -> bool:
        current = self.window_index(window_minutes, at)
        if not isinstance(candidate, str) or len(candidate) != self.digits:
            return False
        given = candidate.encode("ascii", errors="replace")
        ok = False
        # sem curto-circuito: sempre compara as duas janelas
        for index in (current, current - 1):
            expected = self._code_for(secret, index).encode("ascii")
            ok |= hmac.compare_digest(expected, given)
        return ok


def passcode_secret(code: str) -> bytes:
    """Shared secret behind a passcode's window codes (the holder knows the code)."""
    return code.encode("utf-8")
