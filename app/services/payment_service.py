import json
import logging
from typing import Any, Dict, Optional

from app.core.config import Settings
from app.core.errors import (
    InvalidRequestError,
    InvalidSignatureError,
    PaymentAPIError,
    PaymentInitError,
    PaymentVerificationError,
)
from app.core.sanitize import trim_string
from app.core.signatures import VerificationOutcome
from app.providers.registry import ProviderName, ProviderRegistry
from app.schemas.payment import (
    InitiatePaymentRequest,
    OrderResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.schemas.subscription import SubscriptionRecord
from app.services.idempotency import IdempotencyLedger

logger = logging.getLogger(__name__)

CAPTURED_EVENT = "payment.captured"
PINELABS_SUCCESS_STATUSES = {"success", "captured"}
UNKNOWN_PLAN = "unknown"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


class PaymentService:
    """
    Orchestrates the three payment entry points.

    Signature checks always run first; subscription state is only touched
    once a check has passed.
    """

    def __init__(self, registry: ProviderRegistry, ledger: IdempotencyLedger, settings: Settings):
        self.registry = registry
        self.ledger = ledger
        self.currency = settings.DEFAULT_CURRENCY
        self.razorpay_webhook_secret = settings.razorpay_webhook_secret

    async def initiate(self, request: InitiatePaymentRequest) -> OrderResponse:
        """Create an order with the configured provider for the selected plan."""
        try:
            provider_name = self.registry.active_name
            provider = self.registry.get(provider_name)

            # 1 INR = 100 paise
            amount_in_paise = round(request.amount * 100)

            order = await provider.create_order(
                amount_in_paise,
                self.currency,
                {"planId": request.planId, "billingCycle": request.billingCycle},
            )
        except Exception as e:
            logger.error(f"Payment initiation error: {type(e).__name__}: {e}")
            raise PaymentInitError("Failed to initiate payment") from e

        logger.info(f"Payment initiated: provider={provider_name.value} orderId={order.order_id} amount={order.amount}")

        return OrderResponse(
            orderId=order.order_id,
            amount=order.amount,
            currency=order.currency,
            provider=provider_name.value,
            providerKey=provider.get_provider_key(),
        )

    async def verify(self, request: VerifyPaymentRequest) -> VerifyPaymentResponse:
        """
        Verify a client-submitted payment and issue its subscription.

        A rejected signature is a 401; an exception while checking is a 500.
        Neither creates a subscription. Resubmitting the same paymentId
        returns the subscription issued the first time.
        """
        try:
            provider = self.registry.get(request.provider)
            is_valid = provider.verify_payment(request.orderId, request.paymentId, request.signature)
        except Exception as e:
            logger.error(f"Payment verification error: {type(e).__name__}: {e}")
            raise PaymentVerificationError("Failed to verify payment", status_code=500) from e

        if not is_valid:
            raise PaymentVerificationError("Payment signature verification failed")

        try:
            existing = await self.ledger.lookup(request.paymentId)
            if existing is not None:
                logger.info(f"Duplicate verification for payment {request.paymentId}, returning {existing.subscriptionId}")
                return self._verify_response(existing)

            subscription = await self.ledger.record_if_absent(request.paymentId, request.planId, request.amount)
        except PaymentAPIError:
            raise
        except Exception as e:
            logger.error(f"Subscription issuance error after verification: {type(e).__name__}: {e}")
            raise PaymentVerificationError("Failed to verify payment", status_code=500) from e

        return self._verify_response(subscription)

    @staticmethod
    def _verify_response(subscription: SubscriptionRecord) -> VerifyPaymentResponse:
        return VerifyPaymentResponse(
            subscriptionId=subscription.subscriptionId,
            amount=subscription.amount,
            planId=subscription.planId,
        )

    async def process_razorpay_webhook(self, body: bytes, signature: Optional[str]) -> Optional[SubscriptionRecord]:
        """
        Handle a Razorpay webhook.

        - Verifies the signature over the raw body before reading it
        - On 'payment.captured', issues the subscription once per payment id
        - Errors after verification are logged and swallowed so the
          provider does not retry
        """
        if not signature:
            logger.warning("Razorpay webhook rejected: missing signature header")
            raise InvalidSignatureError("Webhook signature is missing")

        try:
            provider = self.registry.get(ProviderName.RAZORPAY)
            outcome = provider.check_webhook_signature(body, signature, self.razorpay_webhook_secret)
        except Exception as e:
            # Unconfigured provider or a failing check never passes
            logger.error(f"Razorpay webhook verification error: {type(e).__name__}: {e}")
            outcome = VerificationOutcome.ERRORED

        if not outcome.verified:
            raise InvalidSignatureError("Webhook signature verification failed")

        try:
            return await self._handle_razorpay_event(body)
        except Exception as e:
            logger.error(f"Razorpay webhook processing error: {type(e).__name__}: {e}", exc_info=True)
            return None

    async def _handle_razorpay_event(self, body: bytes) -> Optional[SubscriptionRecord]:
        if not body or not body.strip():
            logger.info("Razorpay webhook with empty body acknowledged")
            return None

        event = json.loads(body)
        if not isinstance(event, dict):
            logger.warning("Razorpay webhook body is not an object; ignoring")
            return None

        if event.get("event") != CAPTURED_EVENT:
            logger.info(f"Razorpay webhook event {event.get('event')!r} acknowledged but not processed")
            return None

        payment = _as_dict(_as_dict(_as_dict(event.get("payload")).get("payment")).get("entity"))
        payment_id = payment.get("id")
        notes = _as_dict(payment.get("notes"))
        plan_id = notes.get("planId") or UNKNOWN_PLAN

        if not payment_id or not isinstance(payment_id, str):
            logger.warning("Razorpay payment.captured without a payment id; nothing to record")
            return None

        return await self._record_webhook_payment(payment_id, plan_id, payment.get("amount"), "Razorpay")

    async def process_pinelabs_webhook(
        self, payload: Dict[str, Any], header_signature: Optional[str] = None
    ) -> Optional[SubscriptionRecord]:
        """
        Handle a PineLabs webhook.

        The signature is read from the x-pinelabs-signature header, falling
        back to the body's signature field. It covers order_id|payment_id|merchant_id.
        """
        signature = trim_string(header_signature) or trim_string(payload.get("signature"))
        if not signature or not isinstance(signature, str):
            raise InvalidSignatureError("Webhook signature is missing")

        order_id = payload.get("order_id")
        payment_id = payload.get("payment_id")
        if not order_id or not payment_id:
            raise InvalidRequestError("Missing required webhook fields")

        try:
            provider = self.registry.get(ProviderName.PINELABS)
            is_valid = provider.verify_payment(str(order_id), str(payment_id), signature)
        except Exception as e:
            # Unconfigured provider or a failing check never passes
            logger.error(f"PineLabs webhook verification error: {type(e).__name__}: {e}")
            is_valid = False

        if not is_valid:
            logger.warning("Invalid PineLabs webhook signature")
            raise InvalidSignatureError("Webhook signature verification failed")

        try:
            if payload.get("status") not in PINELABS_SUCCESS_STATUSES:
                logger.info(f"PineLabs webhook status {payload.get('status')!r} acknowledged but not processed")
                return None
            plan_id = payload.get("plan_id") or UNKNOWN_PLAN
            return await self._record_webhook_payment(str(payment_id), plan_id, payload.get("amount"), "PineLabs")
        except Exception as e:
            logger.error(f"PineLabs webhook processing error: {type(e).__name__}: {e}", exc_info=True)
            return None

    async def _record_webhook_payment(
        self, payment_id: str, plan_id: Any, amount: Any, provider_label: str
    ) -> Optional[SubscriptionRecord]:
        existing = await self.ledger.lookup(payment_id)
        if existing is not None:
            logger.info(f"Duplicate webhook received for payment {payment_id}. Subscription already exists: {existing.subscriptionId}")
            return existing

        amount = _positive_int(amount)
        if amount is None or not isinstance(plan_id, str):
            logger.warning(f"{provider_label} payment {payment_id} has an invalid amount or plan; nothing to record")
            return None

        subscription = await self.ledger.record_if_absent(payment_id, plan_id, amount)
        logger.info(f"{provider_label} payment verified and subscription created: {subscription.subscriptionId}")
        return subscription
