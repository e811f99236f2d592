"""
PaymentEvent Schema
Append-only log of benefit-granting payment actions; never updated after insert
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from utils.timezone import now_utc

EventType = Literal[
    "BenefitsGranted",
    "PaymentProcessed",
    "SubscriptionActivated",
    "UpsellProcessed",
    "MiniDrawProcessed",
]
PackageType = Literal["subscription", "one-time", "upsell", "mini-draw"]


class PaymentEventData(BaseModel):
    """What the payment bought"""
    entries: Optional[int] = Field(default=None, ge=0, description="Entries granted")
    points: Optional[float] = Field(default=None, ge=0, description="Rewards points granted")
    price: Optional[float] = Field(default=None, ge=0, description="Amount paid in AUD")
    package_id: Optional[str] = Field(default=None, description="Catalog id at time of purchase")
    package_name: Optional[str] = Field(default=None, description="Catalog name at time of purchase")
    mini_draw_id: Optional[str] = Field(default=None, description="Target mini draw for mini-draw packages")

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PaymentEvent(BaseModel):
    """
    One row per (paymentIntentId, eventType).
    The document _id is "<eventType>-<paymentIntentId>" so replays collide.
    """
    payment_intent_id: str = Field(..., description="Gateway payment intent id (pi_...)")
    event_type: EventType = Field(default="BenefitsGranted")
    user_id: str = Field(..., description="User ObjectId as hex string")
    package_type: PackageType
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    data: PaymentEventData = Field(default_factory=PaymentEventData)
    processed_by: Literal["api", "webhook"] = Field(default="webhook")
    timestamp: datetime = Field(default_factory=now_utc)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "paymentIntentId": "pi_3QabcXYZ",
                "eventType": "BenefitsGranted",
                "userId": "66f1c0ffee0ddba11ca7f00d",
                "packageType": "one-time",
                "packageId": "tradie-pack",
                "packageName": "Tradie Pack",
                "data": {"entries": 15, "price": 50, "packageId": "tradie-pack"},
                "processedBy": "webhook",
            }
        }

    @property
    def event_id(self) -> str:
        return f"{self.event_type}-{self.payment_intent_id}"

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True, exclude_none=True)
        doc["_id"] = self.event_id
        doc["userId"] = ObjectId(self.user_id)
        return doc
