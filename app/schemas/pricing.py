from typing import Any, List, Literal, Optional
from pydantic import BaseModel

class PricingPlan(BaseModel):
    plan_id: str
    name: str
    monthlyAmount: float
    annualAmount: float
    features: List[str]

class AddonPackage(BaseModel):
    addon_id: str
    name: str
    description: str
    monthlyAmount: float
    annualAmount: float

class PricingData(BaseModel):
    plans: List[PricingPlan]
    addons: Optional[List[AddonPackage]] = None
    redirectUrl: str
    paymentProvider: Optional[Literal["razorpay", "pinelabs"]] = None

class PricingParseRequest(BaseModel):
    # A JSON object, a JSON string, or a base64 encoded JSON string
    data: Any

class PricingParseResponse(BaseModel):
    success: bool = True
    data: PricingData
