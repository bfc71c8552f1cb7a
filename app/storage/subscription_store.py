"""
Subscription storage.

Every implementation must make insert() an atomic check-and-put on the
transaction id: at most one subscription is ever stored per payment.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from postgrest.exceptions import APIError

from app.core.errors import StorageError
from app.schemas.subscription import SubscriptionRecord

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class SubscriptionStore(ABC):
    @abstractmethod
    async def get(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        ...

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[SubscriptionRecord]:
        ...

    @abstractmethod
    async def insert(
        self, record: SubscriptionRecord, transaction_id: Optional[str] = None
    ) -> SubscriptionRecord:
        """
        Store a record, registering the transaction id when given.

        Returns the record already registered for the transaction id if there
        is one, in which case nothing is written.
        """

    @abstractmethod
    async def list(self) -> List[SubscriptionRecord]:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


class InMemorySubscriptionStore(SubscriptionStore):
    """
    Process local store. The check and the put in insert() run without an
    await in between, so they cannot interleave with another request on the
    event loop.
    """

    def __init__(self):
        self._subscriptions: Dict[str, SubscriptionRecord] = {}
        self._by_transaction: Dict[str, str] = {}

    async def get(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        return self._subscriptions.get(subscription_id)

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[SubscriptionRecord]:
        subscription_id = self._by_transaction.get(transaction_id)
        if subscription_id is None:
            return None
        return self._subscriptions.get(subscription_id)

    async def insert(
        self, record: SubscriptionRecord, transaction_id: Optional[str] = None
    ) -> SubscriptionRecord:
        if transaction_id:
            existing_id = self._by_transaction.get(transaction_id)
            if existing_id is not None:
                return self._subscriptions[existing_id]
            self._by_transaction[transaction_id] = record.subscriptionId
        self._subscriptions[record.subscriptionId] = record
        return record

    async def list(self) -> List[SubscriptionRecord]:
        return list(self._subscriptions.values())

    async def clear(self) -> None:
        self._subscriptions.clear()
        self._by_transaction.clear()

    def __len__(self) -> int:
        return len(self._subscriptions)


class SupabaseSubscriptionStore(SubscriptionStore):
    """
    Supabase backed store. Expects a table with a unique constraint on
    transaction_id:

        create table subscriptions (
            subscription_id uuid primary key,
            plan_id text not null,
            amount bigint not null,
            status text not null,
            created_at timestamptz not null,
            transaction_id text unique
        );
    """

    def __init__(self, get_client: Callable[[], Awaitable[Any]], table: str = "subscriptions"):
        self.get_client = get_client
        self.table = table

    @staticmethod
    def _to_row(record: SubscriptionRecord, transaction_id: Optional[str]) -> Dict[str, Any]:
        return {
            "subscription_id": record.subscriptionId,
            "plan_id": record.planId,
            "amount": record.amount,
            "status": record.status,
            "created_at": record.createdAt.isoformat(),
            "transaction_id": transaction_id,
        }

    @staticmethod
    def _from_row(row: Dict[str, Any]) -> SubscriptionRecord:
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return SubscriptionRecord(
            subscriptionId=str(row["subscription_id"]),
            planId=row["plan_id"],
            amount=int(row["amount"]),
            createdAt=created_at,
            status=row.get("status") or "completed",
        )

    async def _select_one(self, column: str, value: str) -> Optional[SubscriptionRecord]:
        try:
            client = await self.get_client()
            result = await client.table(self.table).select("*").eq(column, value).limit(1).execute()
        except Exception as e:
            logger.error(f"Failed to read subscription by {column}: {e}")
            raise StorageError("Failed to read subscription") from e
        if result.data:
            return self._from_row(result.data[0])
        return None

    async def get(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        return await self._select_one("subscription_id", subscription_id)

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[SubscriptionRecord]:
        return await self._select_one("transaction_id", transaction_id)

    async def insert(
        self, record: SubscriptionRecord, transaction_id: Optional[str] = None
    ) -> SubscriptionRecord:
        try:
            client = await self.get_client()
            await client.table(self.table).insert(self._to_row(record, transaction_id)).execute()
            return record
        except APIError as e:
            # Lost the race on the unique constraint: the other insert wins
            if transaction_id and e.code == UNIQUE_VIOLATION:
                existing = await self.get_by_transaction_id(transaction_id)
                if existing is not None:
                    logger.info(f"Transaction {transaction_id} already recorded as {existing.subscriptionId}")
                    return existing
            logger.error(f"Failed to insert subscription: {e}")
            raise StorageError("Failed to store subscription") from e
        except Exception as e:
            logger.error(f"Failed to insert subscription: {e}")
            raise StorageError("Failed to store subscription") from e

    async def list(self) -> List[SubscriptionRecord]:
        try:
            client = await self.get_client()
            result = await client.table(self.table).select("*").execute()
        except Exception as e:
            logger.error(f"Failed to list subscriptions: {e}")
            raise StorageError("Failed to list subscriptions") from e
        return [self._from_row(row) for row in result.data or []]

    async def clear(self) -> None:
        try:
            client = await self.get_client()
            await client.table(self.table).delete().gte("created_at", "1970-01-01T00:00:00+00:00").execute()
        except Exception as e:
            logger.error(f"Failed to clear subscriptions: {e}")
            raise StorageError("Failed to clear subscriptions") from e
