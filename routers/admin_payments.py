# routers/admin_payments.py

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from dependencies.auth import CurrentUser, require_admin
from dependencies.services import get_payment_admin_service
from models.access_request import (
    AccessRequest,
    BulkDeleteBody,
    BulkDeleteResult,
    DeletionHistoryRead,
    RestoreBody,
    SoftDeleteBody,
)
from models.enums import AccessStatus, PaymentStatus
from models.payment_admin import (
    IncomeRange,
    MonthlyIncome,
    MonthlyIncomeDetail,
    PaymentDetails,
    PaymentFilters,
    PaymentListPage,
    PaymentStats,
    YearlyIncome,
)
from services.payment_admin import PaymentAdminService

router = APIRouter(
    prefix="/grant-access/admin",
    tags=["Grant Access Admin"],
)


# -----------------------------------------------------
# Payments: list / stats / details
# -----------------------------------------------------
@router.get("/payments", response_model=PaymentListPage)
def list_payments(
    payment_status: Optional[PaymentStatus] = None,
    access_status: Optional[AccessStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    include_deleted: bool = False,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    filters = PaymentFilters(
        payment_status=payment_status,
        access_status=access_status,
        page=page,
        limit=limit,
        include_deleted=include_deleted,
    )
    return service.list_payments(filters)


@router.get("/payments/stats", response_model=PaymentStats)
def payment_stats(
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.payment_stats()


@router.post("/payments/bulk-delete", response_model=BulkDeleteResult)
def bulk_delete_payments(
    payload: BulkDeleteBody,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    """Permanent. Missing ids are reported in failed_ids, never raised."""
    return service.bulk_delete(payload.ids, actor=current_user.id)


@router.get("/payments/{request_id}", response_model=PaymentDetails)
def payment_details(
    request_id: str,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.payment_details(request_id)


# -----------------------------------------------------
# Payments: delete / restore / history
# -----------------------------------------------------
@router.delete("/payments/{request_id}")
def hard_delete_payment(
    request_id: str,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    service.hard_delete(request_id, actor=current_user.id)
    return {"status": "deleted", "request_id": request_id}


@router.delete("/payments/{request_id}/soft", response_model=AccessRequest)
def soft_delete_payment(
    request_id: str,
    payload: SoftDeleteBody = SoftDeleteBody(),
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.soft_delete(request_id, current_user.id, payload.reason)


@router.put("/payments/{request_id}/restore", response_model=AccessRequest)
def restore_payment(
    request_id: str,
    payload: RestoreBody = RestoreBody(),
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.restore(request_id, current_user.id, payload.reason)


@router.get("/payments/{request_id}/deletion-history", response_model=DeletionHistoryRead)
def deletion_history(
    request_id: str,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.deletion_history(request_id)


# -----------------------------------------------------
# Income analytics
# -----------------------------------------------------
@router.get("/income/monthly", response_model=List[MonthlyIncome])
def monthly_income(
    year: Optional[int] = None,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.monthly_income(year or datetime.now(timezone.utc).year)


@router.get("/income/monthly/{year}/{month}", response_model=MonthlyIncomeDetail)
def monthly_income_detail(
    year: int,
    month: int,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.monthly_income_detail(year, month)


@router.get("/income/range", response_model=IncomeRange)
def income_range(
    start_date: datetime,
    end_date: datetime,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.income_range(start_date, end_date)


@router.get("/income/year/{year}", response_model=YearlyIncome)
def yearly_income(
    year: int,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentAdminService = Depends(get_payment_admin_service),
):
    return service.yearly_income(year)
