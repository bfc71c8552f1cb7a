"""Capability interface every payment provider adapter implements."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from app.core.signatures import VerificationOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderResult:
    order_id: str
    amount: int
    currency: str


class PaymentProvider(ABC):
    """
    Contract shared by Razorpay and PineLabs.

    verify_payment is pure: no I/O, same answer for the same inputs, and
    never raises. Failures during the check are treated as a rejection.
    """

    name: str = ""

    @abstractmethod
    async def create_order(
        self, amount: int, currency: str, metadata: Optional[Dict[str, str]] = None
    ) -> OrderResult:
        """
        Create a payment order with the provider.

        Args:
            amount: Amount in smallest currency unit (paise for INR)
            currency: Currency code (e.g. 'INR')
            metadata: Plan details forwarded to the provider

        Raises:
            ProviderError: If the provider or the network fails
        """

    @abstractmethod
    def get_provider_key(self) -> str:
        """Public identifier handed to the checkout UI. Never a secret."""

    @abstractmethod
    def check_signature(self, order_id: str, payment_id: str, signature: str) -> VerificationOutcome:
        """Full verification result, kept distinct for logging."""

    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> bool:
        try:
            outcome = self.check_signature(order_id, payment_id, signature)
        except Exception as e:
            logger.error(f"{self.name} signature check raised {type(e).__name__}")
            outcome = VerificationOutcome.ERRORED

        if outcome is not VerificationOutcome.VERIFIED:
            logger.warning(f"{self.name} payment signature {outcome.value} for order {order_id}")
        return outcome.verified

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError("amount must be a positive integer in the smallest currency unit")
