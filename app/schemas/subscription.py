from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict

# Only "completed" is issued today; "pending" and "failed" are reserved
SubscriptionStatus = Literal["pending", "completed", "failed"]

class SubscriptionRecord(BaseModel):
    """A completed subscription purchase. Never carries card or cardholder data."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    subscriptionId: str
    planId: str
    amount: int
    createdAt: datetime
    status: SubscriptionStatus = "completed"
