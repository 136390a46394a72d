# passgate/core/errors.py
from enum import Enum


class ReasonCode(str, Enum):
    """Internal classification of a validation outcome (logs/metrics only)."""
    OK = "ok"
    NOT_FOUND = "not_found"
    WINDOW_MISMATCH = "window_mismatch"
    EXHAUSTED = "exhausted"
    EXPIRED = "expired"
    REVOKED = "revoked"
    MALFORMED = "malformed"
    DECRYPT_FAILED = "decrypt_failed"
    BAD_PAYLOAD = "bad_payload"
    REPLAY = "replay"
    PERMISSION_DENIED = "permission_denied"


class TamperError(Exception):
    """Any QR token that cannot be turned into a live payload."""
    public_message = "QR invalid"

    def __init__(self, reason: ReasonCode = ReasonCode.MALFORMED):
        super().__init__(self.public_message)
        self.reason = reason


class DuplicateCode(Exception):
    pass


class IssuanceError(RuntimeError):
    pass


class StoreUnavailable(RuntimeError):
    """Storage collaborator failed; surfaces as 503, never as a validation outcome."""
