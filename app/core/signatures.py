"""
Verification outcomes shared by every provider, and HMAC-SHA256 helpers for
providers without an SDK that verifies signatures (PineLabs).
"""
import enum
import hashlib
import hmac
import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)


class VerificationOutcome(str, enum.Enum):
    VERIFIED = "verified"
    REJECTED = "rejected"
    ERRORED = "errored"

    @property
    def verified(self) -> bool:
        # ERRORED collapses to False: a failing check never counts as a pass
        return self is VerificationOutcome.VERIFIED


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(secret: Union[str, bytes], message: Union[str, bytes]) -> str:
    """Hex encoded HMAC-SHA256 of `message` keyed by `secret`."""
    return hmac.new(_to_bytes(secret), _to_bytes(message), hashlib.sha256).hexdigest()


def compare_signatures(expected: str, supplied: Optional[str]) -> VerificationOutcome:
    """
    Constant-time comparison of an expected and a supplied signature.

    Signatures of a different length are rejected before any byte comparison.
    Any exception raised while comparing (non-ASCII input, wrong types) is
    reported as ERRORED rather than propagated.
    """
    try:
        if not supplied or len(supplied) != len(expected):
            return VerificationOutcome.REJECTED
        if hmac.compare_digest(_to_bytes(expected), _to_bytes(supplied)):
            return VerificationOutcome.VERIFIED
        return VerificationOutcome.REJECTED
    except Exception as e:
        logger.warning(f"Signature comparison failed: {type(e).__name__}")
        return VerificationOutcome.ERRORED

