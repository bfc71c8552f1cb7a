"""Resolves provider adapters from configuration once, at startup."""
import enum
import logging
from typing import Dict, Optional

from app.core.config import Settings
from app.core.errors import ConfigurationError
from app.providers.base import PaymentProvider
from app.providers.pinelabs_provider import PineLabsProvider
from app.providers.razorpay_provider import RazorpayProvider

logger = logging.getLogger(__name__)


class ProviderName(str, enum.Enum):
    RAZORPAY = "razorpay"
    PINELABS = "pinelabs"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ProviderName":
        if not value:
            raise ConfigurationError("PAYMENT_PROVIDER environment variable is not set")
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Invalid payment provider: {value}. Must be 'razorpay' or 'pinelabs'"
            )


class ProviderRegistry:
    def __init__(self, providers: Dict[ProviderName, PaymentProvider], active: Optional[str] = None):
        self._providers = dict(providers)
        self._active = active

    def get(self, name) -> PaymentProvider:
        provider_name = name if isinstance(name, ProviderName) else ProviderName.parse(name)
        provider = self._providers.get(provider_name)
        if provider is None:
            raise ConfigurationError(f"Payment provider '{provider_name.value}' is not configured")
        return provider

    @property
    def active_name(self) -> ProviderName:
        return ProviderName.parse(self._active)

    @property
    def active(self) -> PaymentProvider:
        return self.get(self.active_name)

    def __contains__(self, name) -> bool:
        try:
            provider_name = name if isinstance(name, ProviderName) else ProviderName.parse(name)
        except ConfigurationError:
            return False
        return provider_name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def build_registry(settings: Settings) -> ProviderRegistry:
    """
    Construct an adapter for every provider whose credentials are present.
    Incomplete credentials for the selected provider are logged, and surface
    as a ConfigurationError when that provider is first used.
    """
    providers: Dict[ProviderName, PaymentProvider] = {}

    if settings.RAZORPAY_KEY_ID or settings.RAZORPAY_KEY_SECRET:
        try:
            providers[ProviderName.RAZORPAY] = RazorpayProvider(
                settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET
            )
        except ConfigurationError as e:
            logger.error(f"Razorpay provider disabled: {e}")

    if settings.PINELABS_MERCHANT_ID or settings.PINELABS_SECRET_KEY or settings.PINELABS_ACCESS_CODE:
        try:
            providers[ProviderName.PINELABS] = PineLabsProvider(
                settings.PINELABS_MERCHANT_ID,
                settings.PINELABS_ACCESS_CODE,
                settings.PINELABS_SECRET_KEY,
                settings.PINELABS_API_URL,
            )
        except ConfigurationError as e:
            logger.error(f"PineLabs provider disabled: {e}")

    if not settings.PAYMENT_PROVIDER:
        logger.warning("PAYMENT_PROVIDER not set. Payment initiation will fail.")
    elif settings.PAYMENT_PROVIDER not in {p.value for p in providers}:
        logger.warning(f"Selected payment provider '{settings.PAYMENT_PROVIDER}' is not configured.")

    return ProviderRegistry(providers, active=settings.PAYMENT_PROVIDER)
