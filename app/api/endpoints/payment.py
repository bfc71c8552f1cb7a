from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from app.api.deps import get_payment_service, read_json_object, require_json_content_type
from app.core.sanitize import sanitize_object
from app.schemas.common import AckResponse, ErrorResponse
from app.schemas.payment import (
    InitiatePaymentRequest,
    OrderResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.services.payment_service import PaymentService
import logging

router = APIRouter(dependencies=[Depends(require_json_content_type)])
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post("/initiate", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def initiate_payment(
    request: InitiatePaymentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Create a payment order with the configured provider.

    Accepts: planId, amount (major currency unit), billingCycle
    Returns: orderId, amount (paise), currency, provider, providerKey
    """
    return await service.initiate(request)


@router.post("/verify", response_model=VerifyPaymentResponse, responses=ERROR_RESPONSES)
async def verify_payment(
    request: VerifyPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Verify a completed payment and issue its subscription.

    - 401 if the provider signature does not match
    - Re-submitting the same paymentId returns the original subscription
    """
    return await service.verify(request)


@router.post("/webhook/razorpay", response_model=AckResponse, responses=ERROR_RESPONSES)
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Handle Razorpay webhook events.

    - Verifies the x-razorpay-signature header over the raw body
    - On 'payment.captured', issues the subscription for payment.notes.planId
    - Returns 200 for every correctly signed delivery
    """
    body = await request.body()
    await service.process_razorpay_webhook(body, x_razorpay_signature)
    return AckResponse()


@router.post("/webhook/pinelabs", response_model=AckResponse, responses=ERROR_RESPONSES)
async def pinelabs_webhook(
    request: Request,
    x_pinelabs_signature: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Handle PineLabs webhook notifications.

    The signature comes from the x-pinelabs-signature header or, failing
    that, the body's signature field.
    """
    payload = sanitize_object(await read_json_object(request))
    await service.process_pinelabs_webhook(payload, x_pinelabs_signature)
    return AckResponse()
