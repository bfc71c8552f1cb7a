import logging
from typing import Optional

from app.schemas.subscription import SubscriptionRecord
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

class IdempotencyLedger:
    """Maps a provider transaction (payment) id to the subscription issued for it."""

    def __init__(self, subscriptions: SubscriptionService):
        self.subscriptions = subscriptions

    async def lookup(self, transaction_id: str) -> Optional[SubscriptionRecord]:
        if not transaction_id:
            return None
        return await self.subscriptions.get_subscription_by_transaction_id(transaction_id)

    async def record_if_absent(self, transaction_id: str, plan_id: str, amount: int) -> SubscriptionRecord:
        """
        Return the subscription for transaction_id, issuing one only if none exists.
        The store's check-and-put keeps this at most once per transaction.
        """
        if not transaction_id:
            raise ValueError("transaction_id is required for idempotent recording")

        existing = await self.lookup(transaction_id)
        if existing is not None:
            logger.info(f"Transaction {transaction_id} already recorded as {existing.subscriptionId}")
            return existing
        return await self.subscriptions.issue(plan_id, amount, transaction_id=transaction_id)
