import uuid
import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.schemas.subscription import SubscriptionRecord
from app.storage.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

class SubscriptionService:
    """
    Issues subscription records after a payment has been verified.
    This is the only place subscription state is written.
    """

    def __init__(self, store: SubscriptionStore):
        self.store = store

    @staticmethod
    def generate_subscription_id() -> str:
        return str(uuid.uuid4())

    async def issue(
        self, plan_id: str, amount: int, transaction_id: Optional[str] = None
    ) -> SubscriptionRecord:
        """
        Create a completed subscription for a verified payment.

        Args:
            plan_id: The purchased plan
            amount: Amount paid in smallest currency unit
            transaction_id: Provider payment id, registered for idempotency if given

        Returns:
            The stored record. If the transaction id was already registered,
            the record issued for it earlier.
        """
        if not isinstance(plan_id, str) or not plan_id.strip():
            raise ValueError("plan_id must be a non-empty string")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError("amount must be a positive integer")

        record = SubscriptionRecord(
            subscriptionId=self.generate_subscription_id(),
            planId=plan_id,
            amount=amount,
            createdAt=datetime.now(timezone.utc),
            status="completed",
        )
        stored = await self.store.insert(record, transaction_id=transaction_id)

        if stored.subscriptionId == record.subscriptionId:
            logger.info(f"Issued subscription {stored.subscriptionId} for plan {plan_id}")
        return stored

    async def get_subscription(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        return await self.store.get(subscription_id)

    async def get_subscription_by_transaction_id(self, transaction_id: str) -> Optional[SubscriptionRecord]:
        return await self.store.get_by_transaction_id(transaction_id)

    async def list_subscriptions(self) -> List[SubscriptionRecord]:
        return await self.store.list()
