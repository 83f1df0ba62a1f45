# models/notification.py

"""
Tagged notification payloads.

One record per notification kind, so every template gets exactly the
fields it renders. `kind` doubles as the in-app notification type.
"""

from typing import Annotated, Literal, Optional, Union
from decimal import Decimal
from pydantic import BaseModel, Field


class _Notice(BaseModel):
    access_request_id: str
    listing_id: str
    listing_title: str


class AccessRequestedNotice(_Notice):
    kind: Literal["grant_access_requested"] = "grant_access_requested"
    agent_id: str
    agent_name: str
    agent_email: Optional[str] = None
    location: str
    requested_at: str


class AccessApprovedNotice(_Notice):
    kind: Literal["grant_access_approved"] = "grant_access_approved"
    agent_name: str
    is_free: bool = True
    listing_url: str


class AccessRejectedNotice(_Notice):
    kind: Literal["grant_access_rejected"] = "grant_access_rejected"
    agent_name: str
    reason: str
    contact_email: str


class PaymentLinkNotice(_Notice):
    kind: Literal["grant_access_payment_link"] = "grant_access_payment_link"
    agent_name: str
    amount: Decimal
    currency: str
    payment_link: str
    payment_deadline: str


class PaymentSucceededNotice(_Notice):
    kind: Literal["grant_access_payment_succeeded"] = "grant_access_payment_succeeded"
    agent_name: str
    amount: Decimal
    currency: str
    listing_url: str


class PaymentFailedNotice(_Notice):
    kind: Literal["grant_access_payment_failed"] = "grant_access_payment_failed"
    agent_name: str
    amount: Decimal
    currency: str
    failure_count: int
    attempts_remaining: int
    payment_link: str


class RenterAccessGrantedNotice(_Notice):
    kind: Literal["renter_access_granted"] = "renter_access_granted"
    renter_name: str
    agent_name: str
    agent_email: str
    location: str
    access_type: Literal["free", "paid"]
    listing_url: str


NotificationPayload = Annotated[
    Union[
        AccessRequestedNotice,
        AccessApprovedNotice,
        AccessRejectedNotice,
        PaymentLinkNotice,
        PaymentSucceededNotice,
        PaymentFailedNotice,
        RenterAccessGrantedNotice,
    ],
    Field(discriminator="kind"),
]


class EmailResult(BaseModel):
    success: bool
    error: Optional[str] = None
