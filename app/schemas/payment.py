from typing import Annotated, Literal
from pydantic import BaseModel, BeforeValidator, Field
from app.core.sanitize import sanitize_string, trim_string

# Free text is HTML stripped; cryptographic material is only trimmed
CleanStr = Annotated[str, BeforeValidator(sanitize_string)]
CryptoStr = Annotated[str, BeforeValidator(trim_string)]

ProviderLiteral = Literal["razorpay", "pinelabs"]

class InitiatePaymentRequest(BaseModel):
    planId: CleanStr = Field(min_length=1, max_length=100)
    amount: float = Field(ge=1)  # Major currency unit (e.g. rupees)
    billingCycle: Literal["monthly", "annual"]

class OrderResponse(BaseModel):
    orderId: str
    amount: int  # Amount in smallest currency unit (e.g., paise)
    currency: str
    provider: ProviderLiteral
    providerKey: str

class VerifyPaymentRequest(BaseModel):
    orderId: CryptoStr = Field(min_length=1, max_length=200)
    paymentId: CryptoStr = Field(min_length=1, max_length=200)
    signature: CryptoStr = Field(min_length=1, max_length=500)
    provider: ProviderLiteral
    planId: CleanStr = Field(min_length=1, max_length=100)
    amount: int = Field(ge=1)

class VerifyPaymentResponse(BaseModel):
    success: bool = True
    subscriptionId: str
    amount: int
    planId: str
