import time
import logging
from typing import Dict, Optional

import razorpay
from fastapi.concurrency import run_in_threadpool
from razorpay.errors import SignatureVerificationError

from app.core.errors import ConfigurationError, ProviderError
from app.core.signatures import VerificationOutcome
from app.providers.base import OrderResult, PaymentProvider

logger = logging.getLogger(__name__)

# Hex encoded HMAC-SHA256
SIGNATURE_LENGTH = 64


class RazorpayProvider(PaymentProvider):
    name = "razorpay"

    def __init__(self, key_id: str, key_secret: str, client: Optional[razorpay.Client] = None):
        if not key_id or not key_secret:
            raise ConfigurationError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set in environment variables")

        self.key_id = key_id
        self.key_secret = key_secret
        # The SDK talks HTTPS to api.razorpay.com
        self.client = client or razorpay.Client(auth=(self.key_id, self.key_secret))

    async def create_order(
        self, amount: int, currency: str, metadata: Optional[Dict[str, str]] = None
    ) -> OrderResult:
        self._validate_amount(amount)
        metadata = dict(metadata or {})

        data = {
            "amount": amount,
            "currency": currency,
            "receipt": metadata.pop("receipt", None) or f"receipt_{int(time.time() * 1000)}",
            # Notes come back on the payment entity in webhooks
            "notes": metadata,
        }

        try:
            order = await run_in_threadpool(self.client.order.create, data=data)
        except Exception as e:
            logger.error(f"Error creating Razorpay order: {type(e).__name__}: {e}")
            raise ProviderError("Failed to create Razorpay order") from e

        try:
            return OrderResult(
                order_id=order["id"],
                amount=int(order["amount"]),
                currency=order["currency"],
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected Razorpay order response: {e}")
            raise ProviderError("Failed to create Razorpay order") from e

    def get_provider_key(self) -> str:
        return self.key_id


    def _utility_outcome(self, check, *args) -> VerificationOutcome:
        # The SDK returns True on a match and raises SignatureVerificationError otherwise
        try:
            matched = check(*args)
        except SignatureVerificationError:
            return VerificationOutcome.REJECTED
        except Exception as e:
            logger.warning(f"Razorpay signature check raised {type(e).__name__}")
            return VerificationOutcome.ERRORED
        return VerificationOutcome.VERIFIED if matched is True else VerificationOutcome.REJECTED

    def check_signature(self, order_id: str, payment_id: str, signature: str) -> VerificationOutcome:
        if not signature or len(signature) != SIGNATURE_LENGTH:
            return VerificationOutcome.REJECTED

        return self._utility_outcome(
            self.client.utility.verify_payment_signature,
            {
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            },
        )

    def check_webhook_signature(
        self, raw_body: bytes, signature: Optional[str], secret: Optional[str]
    ) -> VerificationOutcome:
        """
        Verify an x-razorpay-signature header against the exact body received.

        Args:
            raw_body: The raw request body, before any JSON parsing
            signature: The signature header value, if present
            secret: Webhook secret (the key secret when no webhook secret is set)
        """
        if not signature:
            logger.warning("Webhook rejected: missing signature header.")
            return VerificationOutcome.REJECTED

        if not secret:
            logger.error("Webhook secret is not configured; refusing to verify.")
            return VerificationOutcome.ERRORED

        if len(signature) != SIGNATURE_LENGTH:
            logger.warning("Webhook rejected: signature has the wrong length.")
            return VerificationOutcome.REJECTED

        try:
            body = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Webhook body is not valid UTF-8.")
            return VerificationOutcome.ERRORED

        outcome = self._utility_outcome(self.client.utility.verify_webhook_signature, body, signature, secret)
        if outcome is VerificationOutcome.VERIFIED:
            logger.info("Webhook signature verification successful.")
        else:
            logger.warning(f"Webhook rejected: signature {outcome.value}.")
        return outcome
