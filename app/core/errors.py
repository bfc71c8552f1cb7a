"""Error taxonomy shared by the payment core and the HTTP layer."""
from typing import Any, Optional


class ConfigurationError(Exception):
    """Raised when required configuration (provider selection, credentials) is missing or invalid."""


class PaymentAPIError(Exception):
    """
    Base error rendered as the standard envelope:
    {"success": false, "error": {"code": ..., "message": ..., "details": ...}}
    """

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"success": False, "error": error}


class InvalidRequestError(PaymentAPIError):
    code = "INVALID_REQUEST"
    status_code = 400


class InvalidSignatureError(PaymentAPIError):
    code = "INVALID_SIGNATURE"
    status_code = 401


class PaymentVerificationError(PaymentAPIError):
    """401 when the provider rejects the signature, 500 when the check itself blew up."""

    code = "PAYMENT_VERIFICATION_FAILED"
    status_code = 401


class PaymentInitError(PaymentAPIError):
    code = "PAYMENT_INIT_FAILED"
    status_code = 500


class ProviderError(PaymentAPIError):
    code = "PROVIDER_ERROR"
    status_code = 500


class StorageError(PaymentAPIError):
    code = "STORAGE_ERROR"
    status_code = 500
