# services/payment_admin.py

"""
Admin-side management of access request payment records:
listing, stats, details, soft/hard delete, restore and income analytics.
"""

import calendar
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from core.errors import BadRequestError, ConflictError, NotFoundError
from core.logging_config import logger
from models.access_request import AccessRequest, BulkDeleteResult, DeletionHistoryRead
from models.enums import PaymentStatus
from models.payment_admin import (
    AgentDetail,
    DailyIncome,
    IncomeRange,
    MonthlyIncome,
    MonthlyIncomeDetail,
    Pagination,
    PaymentDetails,
    PaymentFilters,
    PaymentListPage,
    PaymentRow,
    PaymentStats,
    YearlyIncome,
)

CENT = Decimal("0.01")


def _average(total: Decimal, count: int) -> Decimal:
    if not count:
        return Decimal("0.00")
    return (total / count).quantize(CENT)


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _day_start(value: date) -> datetime:
    """Midnight UTC of the calendar day `value` falls on."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def _next_month(year: int, month: int):
    return (year + 1, 1) if month == 12 else (year, month + 1)


def _check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise BadRequestError("month must be between 1 and 12")
    if not 2000 <= year <= 2100:
        raise BadRequestError("year out of range")


class PaymentAdminService:
    def __init__(self, repository, listings, directory, bulk_delete_limit: int = 100, currency: str = "USD"):
        self.repository = repository
        self.listings = listings
        self.directory = directory
        self.bulk_delete_limit = bulk_delete_limit
        self.currency = currency

    def _get_or_404(self, request_id: str) -> AccessRequest:
        request = self.repository.get(request_id)
        if request is None:
            raise NotFoundError("Payment record not found")
        return request

    # -----------------------------------------------------
    # List / stats / details
    # -----------------------------------------------------
    def list_payments(self, filters: PaymentFilters) -> PaymentListPage:
        requests, total = self.repository.list_page(filters)

        # Batch enrichment: one query per table, not per row
        users = self.directory.get_users([r.agent_id for r in requests])
        listings = self.listings.get_listing_refs([r.listing_id for r in requests])

        rows = []
        for r in requests:
            agent = users.get(r.agent_id)
            listing = listings.get(r.listing_id)
            rows.append(PaymentRow(
                id=r.id,
                status=r.status,
                listing_id=r.listing_id,
                listing_code=listing.request_code if listing else None,
                listing_title=listing.request_name if listing else None,
                agent_id=r.agent_id,
                agent_name=agent.full_name if agent else None,
                agent_email=agent.email if agent else None,
                agent_phone=agent.phone if agent else None,
                payment=r.payment,
                admin_decision=r.admin_decision,
                is_deleted=r.is_deleted,
                created_at=r.created_at,
                updated_at=r.updated_at,
            ))

        pages = (total + filters.limit - 1) // filters.limit if total else 0
        return PaymentListPage(
            data=rows,
            pagination=Pagination(total=total, page=filters.page, limit=filters.limit, pages=pages),
        )

    def payment_stats(self) -> PaymentStats:
        stats = PaymentStats()
        revenue = Decimal("0")

        for r in self.repository.all_active():
            stats.total_requests += 1

            status_key = str(r.status)
            stats.payments_by_access_status[status_key] = stats.payments_by_access_status.get(status_key, 0) + 1

            if r.payment is None:
                continue

            pay_key = str(r.payment.payment_status)
            stats.payments_by_status[pay_key] = stats.payments_by_status.get(pay_key, 0) + 1

            if r.payment.payment_status == PaymentStatus.succeeded:
                stats.total_paid += 1
                revenue += r.payment.amount
            elif r.payment.payment_status == PaymentStatus.failed:
                stats.total_failed += 1
            elif r.awaiting_payment:
                stats.total_pending += 1

        stats.total_revenue = revenue.quantize(CENT)
        stats.average_payment = _average(revenue, stats.total_paid)
        return stats

    def payment_details(self, request_id: str) -> PaymentDetails:
        request = self._get_or_404(request_id)

        listing = self.listings.get_listing(request.listing_id)
        user = self.directory.get_user(request.agent_id)
        profile = self.directory.get_agent_profile(request.agent_id)

        agent = AgentDetail(
            user_id=request.agent_id,
            name=user.full_name if user else None,
            email=user.email if user else None,
            phone=user.phone if user else None,
            brokerage_name=profile.brokerage_name if profile else None,
            license_number=profile.license_number if profile else None,
            has_grant_access=profile.has_grant_access if profile else False,
            account_status=profile.account_status if profile else None,
        )
        renter = self.directory.get_renter_contact(listing.renter_id) if listing else None

        return PaymentDetails(access_request=request, listing=listing, agent=agent, renter=renter)

    # -----------------------------------------------------
    # Soft delete / restore / history
    # -----------------------------------------------------
    def soft_delete(self, request_id: str, actor: str, reason: Optional[str] = None) -> AccessRequest:
        current = self._get_or_404(request_id)
        if current.is_deleted:
            raise BadRequestError("Payment record is already deleted")

        updated = self.repository.soft_delete(current, actor, reason)
        if updated is None:
            raise BadRequestError("Payment record is already deleted")

        logger.info(f"Payment record {request_id} soft-deleted by {actor}")
        return updated

    def restore(self, request_id: str, actor: str, reason: Optional[str] = None) -> AccessRequest:
        current = self._get_or_404(request_id)
        if not current.is_deleted:
            raise BadRequestError("Payment record is not deleted")

        other = self.repository.find_by_agent_and_listing(current.agent_id, current.listing_id)
        if other is not None and other.id != current.id:
            raise ConflictError("Another active access request exists for this agent and listing")

        updated = self.repository.restore(current, actor, reason)
        if updated is None:
            raise BadRequestError("Payment record is not deleted")

        logger.info(f"Payment record {request_id} restored by {actor}")
        return updated

    def deletion_history(self, request_id: str) -> DeletionHistoryRead:
        request = self._get_or_404(request_id)
        return DeletionHistoryRead(
            access_request_id=request.id,
            is_deleted=request.is_deleted,
            deleted_at=request.deleted_at,
            deleted_by=request.deleted_by,
            delete_reason=request.delete_reason,
            history=request.deletion_history,
        )

    # -----------------------------------------------------
    # Hard delete
    # -----------------------------------------------------
    def hard_delete(self, request_id: str, actor: Optional[str] = None) -> None:
        self._get_or_404(request_id)
        if not self.repository.hard_delete(request_id):
            raise NotFoundError("Payment record not found")
        logger.warning(f"Payment record {request_id} permanently deleted by {actor or 'admin'}")

    def bulk_delete(self, ids: List[str], actor: Optional[str] = None) -> BulkDeleteResult:
        unique_ids = list(OrderedDict.fromkeys(i for i in ids if i))
        if not unique_ids:
            raise BadRequestError("At least one id is required")
        if len(unique_ids) > self.bulk_delete_limit:
            raise BadRequestError(f"Cannot delete more than {self.bulk_delete_limit} records at once")

        deleted = set(self.repository.bulk_hard_delete(unique_ids))
        failed_ids = [i for i in unique_ids if i not in deleted]

        logger.warning(
            f"Bulk delete by {actor or 'admin'}: {len(deleted)} deleted, {len(failed_ids)} failed"
        )
        return BulkDeleteResult(
            deleted_count=len(deleted),
            failed_count=len(failed_ids),
            failed_ids=failed_ids,
        )

    # -----------------------------------------------------
    # Income analytics (payment_succeeded_at of succeeded payments)
    # -----------------------------------------------------
    def _month_summary(self, year: int, month: int, payments: List[AccessRequest]) -> MonthlyIncome:
        total = sum((p.payment.amount for p in payments), Decimal("0"))
        return MonthlyIncome(
            month=f"{year:04d}-{month:02d}",
            month_name=f"{calendar.month_name[month]} {year}",
            total_revenue=total.quantize(CENT),
            payment_count=len(payments),
            average_payment=_average(total, len(payments)),
            currency=self.currency,
        )

    def _paid_in_months(self, start_year: int, start_month: int, end_year: int, end_month: int, window=None):
        """[(year, month, payments)] for every month from start to end inclusive."""
        if window is None:
            window = (_month_start(start_year, start_month), _month_start(*_next_month(end_year, end_month)))
        paid = self.repository.paid_between(*window)

        buckets = OrderedDict()
        y, m = start_year, start_month
        while (y, m) <= (end_year, end_month):
            buckets[(y, m)] = []
            y, m = _next_month(y, m)

        for p in paid:
            at = p.payment.succeeded_at
            if at and (at.year, at.month) in buckets:
                buckets[(at.year, at.month)].append(p)

        return [(y, m, items) for (y, m), items in buckets.items()]

    def monthly_income(self, year: int) -> List[MonthlyIncome]:
        _check_month(year, 1)
        return [self._month_summary(y, m, items) for y, m, items in self._paid_in_months(year, 1, year, 12)]

    def monthly_income_detail(self, year: int, month: int) -> MonthlyIncomeDetail:
        _check_month(year, month)
        (_, _, payments), = self._paid_in_months(year, month, year, month)
        summary = self._month_summary(year, month, payments)

        days = OrderedDict()
        for day in range(1, calendar.monthrange(year, month)[1] + 1):
            days[day] = []
        for p in payments:
            days[p.payment.succeeded_at.day].append(p)

        details = []
        for day, items in days.items():
            if not items:
                continue
            total = sum((p.payment.amount for p in items), Decimal("0"))
            details.append(DailyIncome(
                date=f"{year:04d}-{month:02d}-{day:02d}",
                revenue=total.quantize(CENT),
                payment_count=len(items),
            ))

        return MonthlyIncomeDetail(**summary.model_dump(), details=details)

    def income_range(self, start_date: date, end_date: date) -> IncomeRange:
        """Both ends are whole days: end_date includes every payment made that day."""
        start_date, end_date = _day_start(start_date), _day_start(end_date)
        if start_date > end_date:
            raise BadRequestError("start_date must be before end_date")

        months = [
            self._month_summary(y, m, items)
            for y, m, items in self._paid_in_months(
                start_date.year,
                start_date.month,
                end_date.year,
                end_date.month,
                window=(start_date, end_date + timedelta(days=1)),
            )
        ]
        total = sum((mo.total_revenue for mo in months), Decimal("0"))
        count = sum(mo.payment_count for mo in months)

        return IncomeRange(
            start_date=start_date,
            end_date=end_date,
            total_revenue=total,
            total_payments=count,
            month_count=len(months),
            average_per_month=_average(total, len(months)),
            months=months,
        )

    def yearly_income(self, year: int) -> YearlyIncome:
        months = self.monthly_income(year)
        return YearlyIncome(
            year=year,
            total_revenue=sum((mo.total_revenue for mo in months), Decimal("0")),
            total_payments=sum(mo.payment_count for mo in months),
            monthly_breakdown=months,
        )
