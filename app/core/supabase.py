import logging
from typing import Optional
from supabase import create_async_client, AsyncClient
from app.core.config import Settings, settings as default_settings
from app.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

class SupabaseManager:
    """
    Owns the async Supabase clients behind the subscription store.

    Subscriptions are written server side, so the store asks for the service
    role client. Without SUPABASE_SERVICE_ROLE_KEY the anon client is shared
    and row level security must allow inserts into the subscriptions table.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.client: Optional[AsyncClient] = None
        self.service_client: Optional[AsyncClient] = None

    @property
    def url(self) -> str:
        return (self.settings.SUPABASE_URL or "").strip()

    def validate(self) -> None:
        """Fail at startup rather than on the first webhook."""
        if not self.url:
            raise ConfigurationError("SUPABASE_URL is required when SUBSCRIPTION_STORE is 'supabase'")
        if not self.url.startswith(("https://", "http://")):
            raise ConfigurationError("SUPABASE_URL must be an http(s) URL")
        if not self.settings.SUPABASE_KEY and not self.settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ConfigurationError("SUPABASE_KEY or SUPABASE_SERVICE_ROLE_KEY is required when SUBSCRIPTION_STORE is 'supabase'")

    async def get_client(self) -> AsyncClient:
        if self.client is None:
            if not self.url or not self.settings.SUPABASE_KEY:
                raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set for the anon client")
            self.client = await create_async_client(self.url, self.settings.SUPABASE_KEY)
        return self.client

    async def get_service_client(self) -> AsyncClient:
        if self.service_client is None:
            key: Optional[str] = self.settings.SUPABASE_SERVICE_ROLE_KEY
            if key:
                if not self.url:
                    raise ConfigurationError("SUPABASE_URL must be set for the service role client")
                logger.info("Initializing Supabase client with Service Role Key.")
                self.service_client = await create_async_client(self.url, key)
            else:
                # Logged once, the anon client is cached as the service client
                logger.warning("SUPABASE_SERVICE_ROLE_KEY not found. Falling back to SUPABASE_KEY. RLS might block subscription writes.")
                self.service_client = await self.get_client()
        return self.service_client
