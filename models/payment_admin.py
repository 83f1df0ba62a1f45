# models/payment_admin.py

from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from models.enums import AccessStatus, PaymentStatus
from models.access_request import AccessRequest, PaymentRecord, AdminDecision
from models.listing import Listing
from models.user import RenterContact


class PaymentFilters(BaseModel):
    """Admin list filters (replaces the open-ended query dict)."""
    payment_status: Optional[PaymentStatus] = None
    access_status: Optional[AccessStatus] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    include_deleted: bool = False


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class PaymentRow(BaseModel):
    """One access request as shown in the admin payments table."""
    id: str
    status: AccessStatus
    listing_id: str
    listing_code: Optional[str] = None
    listing_title: Optional[str] = None
    agent_id: str
    agent_name: Optional[str] = None
    agent_email: Optional[str] = None
    agent_phone: Optional[str] = None
    payment: Optional[PaymentRecord] = None
    admin_decision: Optional[AdminDecision] = None
    is_deleted: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None


class PaymentListPage(BaseModel):
    data: List[PaymentRow]
    pagination: Pagination


class PaymentStats(BaseModel):
    total_requests: int = 0
    total_paid: int = 0
    total_pending: int = 0
    total_failed: int = 0
    total_revenue: Decimal = Decimal("0")
    average_payment: Decimal = Decimal("0")
    payments_by_status: Dict[str, int] = Field(default_factory=dict)
    payments_by_access_status: Dict[str, int] = Field(default_factory=dict)


class AgentDetail(BaseModel):
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    brokerage_name: Optional[str] = None
    license_number: Optional[str] = None
    has_grant_access: bool = False
    account_status: Optional[str] = None


class PaymentDetails(BaseModel):
    access_request: AccessRequest
    listing: Optional[Listing] = None
    agent: AgentDetail
    renter: Optional[RenterContact] = None


# -----------------------------------------------------
# Income analytics
# -----------------------------------------------------
class MonthlyIncome(BaseModel):
    month: str                      # "2026-03"
    month_name: str                 # "March 2026"
    total_revenue: Decimal
    payment_count: int
    average_payment: Decimal
    currency: str


class DailyIncome(BaseModel):
    date: str
    revenue: Decimal
    payment_count: int


class MonthlyIncomeDetail(BaseModel):
    month: str
    month_name: str
    total_revenue: Decimal
    payment_count: int
    average_payment: Decimal
    currency: str
    details: List[DailyIncome] = Field(default_factory=list)


class IncomeRange(BaseModel):
    start_date: datetime
    end_date: datetime
    total_revenue: Decimal
    total_payments: int
    month_count: int
    average_per_month: Decimal
    months: List[MonthlyIncome] = Field(default_factory=list)


class YearlyIncome(BaseModel):
    year: int
    total_revenue: Decimal
    total_payments: int
    monthly_breakdown: List[MonthlyIncome] = Field(default_factory=list)
