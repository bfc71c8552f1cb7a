from typing import Optional

from app.core.config import Settings
from app.core.errors import ConfigurationError
from app.core.supabase import SupabaseManager
from app.storage.subscription_store import (
    InMemorySubscriptionStore,
    SubscriptionStore,
    SupabaseSubscriptionStore,
)


def build_subscription_store(settings: Settings, manager: Optional[SupabaseManager] = None) -> SubscriptionStore:
    """Pick the subscription store named by SUBSCRIPTION_STORE."""
    if settings.SUBSCRIPTION_STORE == "memory":
        return InMemorySubscriptionStore()
    if settings.SUBSCRIPTION_STORE == "supabase":
        manager = manager or SupabaseManager(settings)
        manager.validate()
        return SupabaseSubscriptionStore(
            manager.get_service_client, table=settings.SUPABASE_SUBSCRIPTIONS_TABLE
        )
    raise ConfigurationError(
        f"Invalid subscription store: {settings.SUBSCRIPTION_STORE}. Must be 'memory' or 'supabase'"
    )


__all__ = [
    "InMemorySubscriptionStore",
    "SubscriptionStore",
    "SupabaseSubscriptionStore",
    "build_subscription_store",
]
