from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    SUBSCRIPTION_ACTIVE = "subscription.active"
    SUBSCRIPTION_REVOKED = "subscription.revoked"
    IGNORED = "ignored"

    @classmethod
    def _missing_(cls, value):
        # any event we do not act on
        return cls.IGNORED


class WebhookEvent(BaseModel):
    type: str
    data: dict = Field(default_factory=dict)

    @property
    def kind(self) -> EventType:
        return EventType(self.type)


class Subscription(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    customer_id: Optional[str] = None
    checkout_id: Optional[str] = None


class SubscriptionMetadata(BaseModel):
    """Public metadata written onto the Clerk user."""

    subscriptionId: Optional[str] = None
    customerId: Optional[str] = None
    plan: str
    status: str


class Product(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float = 0.0                 # major units, e.g. 19.99
    currency: str = "USD"
    features: List[str] = Field(default_factory=list)
    is_popular: bool = False


class PortalSession(BaseModel):
    url: str


class AuthCheck(BaseModel):
    userId: str
