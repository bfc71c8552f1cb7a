import hashlib
import hmac
import json
import os
from unittest.mock import MagicMock

# app.main builds a default app at import time
os.environ.setdefault("NODE_ENV", "development")

import pytest
import razorpay
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app
from app.providers.pinelabs_provider import PineLabsProvider
from app.providers.razorpay_provider import RazorpayProvider
from app.providers.registry import ProviderName, ProviderRegistry
from app.services.idempotency import IdempotencyLedger
from app.services.payment_service import PaymentService
from app.services.subscription_service import SubscriptionService
from app.storage.subscription_store import InMemorySubscriptionStore

RAZORPAY_KEY_ID = "rzp_test_key_id"
RAZORPAY_KEY_SECRET = "test_key_secret"
RAZORPAY_WEBHOOK_SECRET = "test_webhook_secret"
PINELABS_MERCHANT_ID = "test_merchant_id"
PINELABS_ACCESS_CODE = "test_access_code"
PINELABS_SECRET_KEY = "test_secret_key"


def sign(secret: str, message) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def razorpay_event(payment_id="pay_test123", order_id="order_test123", amount=50000, plan_id="basic",
                   event="payment.captured") -> bytes:
    payload = {
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": order_id,
                    "amount": amount,
                    "notes": {"planId": plan_id},
                }
            }
        },
    }
    return json.dumps(payload).encode("utf-8")


def make_settings(**overrides) -> Settings:
    values = dict(
        PAYMENT_PROVIDER="razorpay",
        NODE_ENV="test",
        ALLOWED_ORIGINS="http://localhost:4200",
        RAZORPAY_KEY_ID=RAZORPAY_KEY_ID,
        RAZORPAY_KEY_SECRET=RAZORPAY_KEY_SECRET,
        RAZORPAY_WEBHOOK_SECRET=RAZORPAY_WEBHOOK_SECRET,
        PINELABS_MERCHANT_ID=PINELABS_MERCHANT_ID,
        PINELABS_ACCESS_CODE=PINELABS_ACCESS_CODE,
        PINELABS_SECRET_KEY=PINELABS_SECRET_KEY,
        PINELABS_API_URL="https://api.pluralonline.com",
        SUBSCRIPTION_STORE="memory",
        ENFORCE_HTTPS=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def razorpay_sdk():
    # Orders are stubbed; signature checks run through the real SDK utility
    sdk = razorpay.Client(auth=(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET))
    sdk.order = MagicMock()
    sdk.order.create.return_value = {"id": "order_test123", "amount": 49900, "currency": "INR"}
    return sdk


@pytest.fixture
def razorpay_provider(razorpay_sdk):
    return RazorpayProvider(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, client=razorpay_sdk)


@pytest.fixture
def pinelabs_provider():
    return PineLabsProvider(PINELABS_MERCHANT_ID, PINELABS_ACCESS_CODE, PINELABS_SECRET_KEY)


@pytest.fixture
def registry(razorpay_provider, pinelabs_provider):
    return ProviderRegistry(
        {ProviderName.RAZORPAY: razorpay_provider, ProviderName.PINELABS: pinelabs_provider},
        active="razorpay",
    )


@pytest.fixture
def store():
    return InMemorySubscriptionStore()


@pytest.fixture
def subscription_service(store):
    return SubscriptionService(store)


@pytest.fixture
def ledger(subscription_service):
    return IdempotencyLedger(subscription_service)


@pytest.fixture
def payment_service(registry, ledger, settings):
    return PaymentService(registry, ledger, settings)


@pytest.fixture
def app(settings, registry, store):
    return create_app(settings, registry=registry, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
