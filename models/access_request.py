# models/access_request.py

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from models.enums import (
    AccessStatus,
    PaymentStatus,
    DeletionAction,
    ReconcileOutcome,
)


# -----------------------------------------------------
# Embedded records
# -----------------------------------------------------
class PaymentRecord(BaseModel):
    """Charge attached to an access request (flat payment_* columns)."""
    amount: Decimal = Field(Decimal("0"), ge=0, description="Charge amount in major currency units")
    currency: str = Field("USD", description="ISO currency code")
    external_ref: Optional[str] = Field(None, description="Stripe PaymentIntent ID")
    payment_status: PaymentStatus = PaymentStatus.pending
    failure_count: int = Field(0, ge=0)
    failed_at: List[datetime] = Field(default_factory=list)
    last_failure_ref: Optional[str] = Field(None, description="Intent (or event) whose failure was counted last")
    succeeded_at: Optional[datetime] = None


class AdminDecision(BaseModel):
    decided_by: str
    decided_at: datetime
    notes: Optional[str] = None
    charge_amount: Optional[Decimal] = None
    is_free: bool = False


class DeletionHistoryEntry(BaseModel):
    actor: str
    action: DeletionAction
    at: datetime
    reason: Optional[str] = None


# -----------------------------------------------------
# Access request (the aggregate)
# -----------------------------------------------------
class AccessRequest(BaseModel):
    id: str
    listing_id: str
    agent_id: str
    status: AccessStatus
    payment: Optional[PaymentRecord] = None
    admin_decision: Optional[AdminDecision] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    delete_reason: Optional[str] = None
    deletion_history: List[DeletionHistoryEntry] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    @property
    def is_decided(self) -> bool:
        return self.admin_decision is not None

    @property
    def has_billable_payment(self) -> bool:
        """A charge decision was made and carries a positive amount."""
        return (
            self.admin_decision is not None
            and not self.admin_decision.is_free
            and self.payment is not None
            and self.payment.amount > 0
        )

    @property
    def awaiting_payment(self) -> bool:
        return self.status == AccessStatus.pending and self.has_billable_payment

    @classmethod
    def from_row(cls, row: dict) -> "AccessRequest":
        """Build the aggregate from a flat access_requests row."""
        payment = None
        if row.get("payment_status") is not None or row.get("payment_amount") is not None:
            payment = PaymentRecord(
                amount=row.get("payment_amount") or 0,
                currency=row.get("payment_currency") or "USD",
                external_ref=row.get("payment_external_ref"),
                payment_status=row.get("payment_status") or PaymentStatus.pending,
                failure_count=row.get("payment_failure_count") or 0,
                failed_at=row.get("payment_failed_at") or [],
                last_failure_ref=row.get("payment_last_failure_ref"),
                succeeded_at=row.get("payment_succeeded_at"),
            )

        decision = None
        if row.get("decided_at"):
            decision = AdminDecision(
                decided_by=row.get("decided_by") or "",
                decided_at=row["decided_at"],
                notes=row.get("decision_notes"),
                charge_amount=row.get("decision_charge_amount"),
                is_free=bool(row.get("decision_is_free")),
            )

        return cls(
            id=str(row["id"]),
            listing_id=str(row["listing_id"]),
            agent_id=str(row["agent_id"]),
            status=row["status"],
            payment=payment,
            admin_decision=decision,
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
            is_deleted=bool(row.get("is_deleted")),
            deleted_at=row.get("deleted_at"),
            deleted_by=row.get("deleted_by"),
            delete_reason=row.get("delete_reason"),
            deletion_history=row.get("deletion_history") or [],
        )


# -----------------------------------------------------
# Request bodies
# -----------------------------------------------------
class AccessRequestCreate(BaseModel):
    listing_id: str = Field(..., min_length=1, description="Pre-market listing the agent wants to see")


class ApproveAccessBody(BaseModel):
    notes: Optional[str] = None
    is_free: bool = Field(True, description="False routes the decision through the charge path")
    charge_amount: Optional[Decimal] = None


class ChargeAccessBody(BaseModel):
    charge_amount: Optional[Decimal] = Field(None, description="Amount the agent must pay")
    notes: Optional[str] = None


class RejectAccessBody(BaseModel):
    notes: Optional[str] = Field(None, description="Reason shown to the agent")


class PaymentIntentCreate(BaseModel):
    access_request_id: str = Field(..., min_length=1)


class SoftDeleteBody(BaseModel):
    reason: Optional[str] = None


class RestoreBody(BaseModel):
    reason: Optional[str] = None


class BulkDeleteBody(BaseModel):
    ids: List[str] = Field(default_factory=list)


# -----------------------------------------------------
# Responses
# -----------------------------------------------------
class PaymentIntentRead(BaseModel):
    access_request_id: str
    client_secret: str
    amount: Decimal
    currency: str


class ReconcileResult(BaseModel):
    outcome: ReconcileOutcome
    event_type: str
    access_request_id: Optional[str] = None


class BulkDeleteResult(BaseModel):
    deleted_count: int
    failed_count: int
    failed_ids: List[str] = Field(default_factory=list)


class DeletionHistoryRead(BaseModel):
    access_request_id: str
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    delete_reason: Optional[str] = None
    history: List[DeletionHistoryEntry] = Field(default_factory=list)
