# models/payment.py

from typing import Optional, Dict
from pydantic import BaseModel, Field

from models.enums import PaymentEventKind


class GatewayIntent(BaseModel):
    """What the gateway hands back after creating a payment intent."""
    external_ref: str
    client_secret: str


class IntentState(BaseModel):
    external_ref: str
    status: str
    has_payment_error: bool = False
    metadata: Dict[str, str] = Field(default_factory=dict)


class PaymentEvent(BaseModel):
    """A verified webhook event reduced to what reconciliation needs."""
    kind: PaymentEventKind
    event_type: str
    event_id: Optional[str] = None
    external_ref: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def access_request_id(self) -> Optional[str]:
        return self.metadata.get("access_request_id")
