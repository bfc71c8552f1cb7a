"""
PineLabs (Plural Online) payment provider.

Plural requires a merchant id, an access code and a secret key. All API
traffic must go over HTTPS.
"""
import time
import secrets
import logging
from typing import Dict, Optional

from app.core.errors import ConfigurationError
from app.core.signatures import VerificationOutcome, compare_signatures, compute_signature
from app.providers.base import OrderResult, PaymentProvider

logger = logging.getLogger(__name__)

PINELABS_API_BASE_URL = "https://api.pluralonline.com"

class PineLabsProvider(PaymentProvider):
    name = "pinelabs"

    def __init__(
        self,
        merchant_id: str,
        access_code: str,
        secret_key: str,
        api_base_url: Optional[str] = None,
    ):
        if not merchant_id or not access_code or not secret_key:
            raise ConfigurationError(
                "PINELABS_MERCHANT_ID, PINELABS_ACCESS_CODE, and PINELABS_SECRET_KEY must be set in environment variables"
            )

        self.merchant_id = merchant_id
        self.access_code = access_code
        self.secret_key = secret_key
        self.api_base_url = api_base_url or PINELABS_API_BASE_URL

        if not self.api_base_url.startswith("https://"):
            raise ConfigurationError("PineLabs API URL must use HTTPS protocol for security")

    async def create_order(
        self, amount: int, currency: str, metadata: Optional[Dict[str, str]] = None
    ) -> OrderResult:
        self._validate_amount(amount)
        # Plural order references are generated merchant side and reported
        # back on the webhook as order_id.
        order_id = f"pl_{int(time.time() * 1000)}_{secrets.token_hex(4)}"

        logger.info(f"PineLabs order reference {order_id} created for plan {(metadata or {}).get('planId')}")
        return OrderResult(order_id=order_id, amount=amount, currency=currency)

    def get_provider_key(self) -> str:
        return self.merchant_id

    def signed_message(self, order_id: str, payment_id: str) -> str:
        # The merchant id is bound into the signed message
        return f"{order_id}|{payment_id}|{self.merchant_id}"

    def check_signature(self, order_id: str, payment_id: str, signature: str) -> VerificationOutcome:
        expected = compute_signature(self.secret_key, self.signed_message(order_id, payment_id))
        return compare_signatures(expected, signature)
