import re
from unittest.mock import MagicMock

import pytest
from razorpay.errors import SignatureVerificationError

from app.core.errors import ConfigurationError, ProviderError
from app.core.signatures import VerificationOutcome
from app.providers.pinelabs_provider import PineLabsProvider
from app.providers.razorpay_provider import RazorpayProvider
from conftest import (
    PINELABS_ACCESS_CODE,
    PINELABS_MERCHANT_ID,
    PINELABS_SECRET_KEY,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    sign,
)


def flip_first_char(signature: str) -> str:
    return ("0" if signature[0] != "0" else "1") + signature[1:]


class TestRazorpayProvider:
    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            RazorpayProvider("", RAZORPAY_KEY_SECRET, client=MagicMock())
        with pytest.raises(ConfigurationError):
            RazorpayProvider(RAZORPAY_KEY_ID, "", client=MagicMock())

    def test_provider_key_is_public_key_id(self, razorpay_provider):
        assert razorpay_provider.get_provider_key() == RAZORPAY_KEY_ID

    def test_verify_valid_signature(self, razorpay_provider):
        signature = sign(RAZORPAY_KEY_SECRET, "o1|p1")
        assert razorpay_provider.verify_payment("o1", "p1", signature) is True

    def test_verify_rejects_flipped_signature(self, razorpay_provider):
        signature = flip_first_char(sign(RAZORPAY_KEY_SECRET, "o1|p1"))
        assert razorpay_provider.verify_payment("o1", "p1", signature) is False

    def test_verify_rejects_swapped_ids(self, razorpay_provider):
        signature = sign(RAZORPAY_KEY_SECRET, "o1|p1")
        assert razorpay_provider.verify_payment("p1", "o1", signature) is False

    def test_verify_rejects_wrong_length(self, razorpay_provider):
        signature = sign(RAZORPAY_KEY_SECRET, "o1|p1")
        assert razorpay_provider.verify_payment("o1", "p1", signature[:32]) is False
        assert razorpay_provider.verify_payment("o1", "p1", "") is False

    def test_verify_is_deterministic(self, razorpay_provider):
        good = sign(RAZORPAY_KEY_SECRET, "o1|p1")
        bad = flip_first_char(good)
        assert [razorpay_provider.verify_payment("o1", "p1", good) for _ in range(5)] == [True] * 5
        assert [razorpay_provider.verify_payment("o1", "p1", bad) for _ in range(5)] == [False] * 5

    def test_verify_fails_closed_when_check_raises(self, razorpay_provider, monkeypatch):
        def boom(*args):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(razorpay_provider, "check_signature", boom)
        assert razorpay_provider.verify_payment("o1", "p1", sign(RAZORPAY_KEY_SECRET, "o1|p1")) is False

    def test_check_signature_reports_outcome(self, razorpay_provider):
        assert razorpay_provider.check_signature("o1", "p1", "short") is VerificationOutcome.REJECTED

    def test_non_ascii_signature_is_errored(self, razorpay_provider):
        assert razorpay_provider.check_signature("o1", "p1", "é" * 64) is VerificationOutcome.ERRORED
        assert razorpay_provider.verify_payment("o1", "p1", "é" * 64) is False

    def test_check_signature_uses_sdk_utility(self):
        sdk = MagicMock()
        sdk.utility.verify_payment_signature.return_value = True
        provider = RazorpayProvider(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, client=sdk)
        signature = sign(RAZORPAY_KEY_SECRET, "o1|p1")

        assert provider.check_signature("o1", "p1", signature) is VerificationOutcome.VERIFIED
        sdk.utility.verify_payment_signature.assert_called_once_with({
            "razorpay_order_id": "o1",
            "razorpay_payment_id": "p1",
            "razorpay_signature": signature,
        })

    @pytest.mark.parametrize("error, expected", [
        (SignatureVerificationError("Razorpay Signature Verification Failed"), VerificationOutcome.REJECTED),
        (RuntimeError("unexpected"), VerificationOutcome.ERRORED),
    ])
    def test_sdk_failures_map_to_outcomes(self, error, expected):
        sdk = MagicMock()
        sdk.utility.verify_payment_signature.side_effect = error
        provider = RazorpayProvider(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, client=sdk)

        assert provider.check_signature("o1", "p1", "0" * 64) is expected

    def test_wrong_length_never_reaches_sdk(self):
        sdk = MagicMock()
        provider = RazorpayProvider(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, client=sdk)

        assert provider.check_signature("o1", "p1", "abc123") is VerificationOutcome.REJECTED
        sdk.utility.verify_payment_signature.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_order_sends_notes_and_receipt(self, razorpay_provider, razorpay_sdk):
        order = await razorpay_provider.create_order(49900, "INR", {"planId": "basic", "billingCycle": "monthly"})

        assert order.order_id == "order_test123"
        assert order.amount == 49900
        assert order.currency == "INR"

        data = razorpay_sdk.order.create.call_args.kwargs["data"]
        assert data["amount"] == 49900
        assert data["currency"] == "INR"
        assert data["notes"] == {"planId": "basic", "billingCycle": "monthly"}
        assert re.match(r"^receipt_\d+$", data["receipt"])

    @pytest.mark.asyncio
    async def test_create_order_uses_supplied_receipt(self, razorpay_provider, razorpay_sdk):
        await razorpay_provider.create_order(100, "INR", {"receipt": "rcpt_1", "planId": "pro"})
        data = razorpay_sdk.order.create.call_args.kwargs["data"]
        assert data["receipt"] == "rcpt_1"
        assert data["notes"] == {"planId": "pro"}

    @pytest.mark.asyncio
    async def test_create_order_wraps_sdk_failures(self, razorpay_provider, razorpay_sdk):
        razorpay_sdk.order.create.side_effect = Exception("Authentication failed: key_secret=abc")

        with pytest.raises(ProviderError) as exc_info:
            await razorpay_provider.create_order(100, "INR", {})

        assert exc_info.value.code == "PROVIDER_ERROR"
        assert "key_secret" not in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -100, 10.5, True])
    async def test_create_order_rejects_invalid_amounts(self, razorpay_provider, razorpay_sdk, amount):
        with pytest.raises(ValueError):
            await razorpay_provider.create_order(amount, "INR", {})
        razorpay_sdk.order.create.assert_not_called()


class TestRazorpayWebhookSignature:
    body = b'{"event":"payment.captured"}'

    def check(self, provider, body, signature, secret="whsec"):
        return provider.check_webhook_signature(body, signature, secret)

    def test_valid_signature(self, razorpay_provider):
        assert self.check(razorpay_provider, self.body, sign("whsec", self.body)) is VerificationOutcome.VERIFIED

    def test_missing_header_is_rejected(self, razorpay_provider):
        assert self.check(razorpay_provider, self.body, None) is VerificationOutcome.REJECTED
        assert self.check(razorpay_provider, self.body, "") is VerificationOutcome.REJECTED

    def test_signature_is_over_exact_bytes(self, razorpay_provider):
        reformatted = b'{"event": "payment.captured"}'
        assert self.check(razorpay_provider, reformatted, sign("whsec", self.body)) is VerificationOutcome.REJECTED

    def test_wrong_secret_is_rejected(self, razorpay_provider):
        assert self.check(razorpay_provider, self.body, sign("other", self.body)) is VerificationOutcome.REJECTED

    def test_wrong_length_is_rejected(self, razorpay_provider):
        assert self.check(razorpay_provider, self.body, "abc123") is VerificationOutcome.REJECTED

    def test_missing_secret_fails_closed(self, razorpay_provider):
        outcome = self.check(razorpay_provider, self.body, sign("", self.body), secret="")
        assert outcome is VerificationOutcome.ERRORED

    def test_empty_body_can_be_signed(self, razorpay_provider):
        assert self.check(razorpay_provider, b"", sign("whsec", b"")) is VerificationOutcome.VERIFIED

    def test_invalid_utf8_body_is_errored(self, razorpay_provider):
        body = b"\xff\xfe\xfd"
        assert self.check(razorpay_provider, body, sign("whsec", body)) is VerificationOutcome.ERRORED

    def test_uses_sdk_webhook_check(self):
        sdk = MagicMock()
        sdk.utility.verify_webhook_signature.return_value = True
        provider = RazorpayProvider(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, client=sdk)
        signature = sign("whsec", self.body)

        assert self.check(provider, self.body, signature) is VerificationOutcome.VERIFIED
        sdk.utility.verify_webhook_signature.assert_called_once_with(self.body.decode("utf-8"), signature, "whsec")


class TestPineLabsProvider:
    def test_requires_all_credentials(self):
        with pytest.raises(ConfigurationError):
            PineLabsProvider(PINELABS_MERCHANT_ID, "", PINELABS_SECRET_KEY)
        with pytest.raises(ConfigurationError):
            PineLabsProvider("", PINELABS_ACCESS_CODE, PINELABS_SECRET_KEY)

    def test_requires_https_api_url(self):
        with pytest.raises(ConfigurationError, match="HTTPS"):
            PineLabsProvider(PINELABS_MERCHANT_ID, PINELABS_ACCESS_CODE, PINELABS_SECRET_KEY,
                             api_base_url="http://api.pluralonline.com")

    def test_provider_key_is_merchant_id(self, pinelabs_provider):
        assert pinelabs_provider.get_provider_key() == PINELABS_MERCHANT_ID

    def test_verify_valid_signature_includes_merchant_id(self, pinelabs_provider):
        signature = sign(PINELABS_SECRET_KEY, f"o1|p1|{PINELABS_MERCHANT_ID}")
        assert pinelabs_provider.verify_payment("o1", "p1", signature) is True

    def test_signature_without_merchant_id_is_rejected(self, pinelabs_provider):
        signature = sign(PINELABS_SECRET_KEY, "o1|p1")
        assert pinelabs_provider.verify_payment("o1", "p1", signature) is False

    def test_signature_for_other_merchant_is_rejected(self, pinelabs_provider):
        signature = sign(PINELABS_SECRET_KEY, "o1|p1|another_merchant")
        assert pinelabs_provider.verify_payment("o1", "p1", signature) is False

    def test_verify_rejects_wrong_length(self, pinelabs_provider):
        assert pinelabs_provider.verify_payment("o1", "p1", "deadbeef") is False

    @pytest.mark.asyncio
    async def test_create_order_generates_reference(self, pinelabs_provider):
        order = await pinelabs_provider.create_order(49900, "INR", {"planId": "basic"})
        assert re.match(r"^pl_\d+_[0-9a-f]{8}$", order.order_id)
        assert order.amount == 49900
        assert order.currency == "INR"

    @pytest.mark.asyncio
    async def test_create_order_ids_are_unique(self, pinelabs_provider):
        ids = {(await pinelabs_provider.create_order(100, "INR", {})).order_id for _ in range(20)}
        assert len(ids) == 20
