# services/access_repository.py

"""
Supabase-backed storage for access requests.

Every state transition that can race (admin decision, payment success,
failure counting) is a conditional UPDATE: the WHERE clause carries the
precondition and an empty result means another writer got there first.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Tuple

from core.errors import ConflictError, NotFoundError, handle_supabase_error, is_unique_violation
from core.logging_config import logger
from models.access_request import AccessRequest, AdminDecision, DeletionHistoryEntry
from models.enums import AccessStatus, PaymentStatus, DeletionAction
from models.payment_admin import PaymentFilters

# Compare-and-set retries for the failure counter
FAILURE_CAS_RETRIES = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _amount(value: Optional[Decimal]) -> Optional[str]:
    # numeric columns take strings; JSON has no Decimal
    return str(value) if value is not None else None


class AccessRequestRepository:
    TABLE = "access_requests"

    def __init__(self, client):
        self.client = client

    def _table(self):
        return self.client.table(self.TABLE)

    @staticmethod
    def _first(result) -> Optional[AccessRequest]:
        rows = getattr(result, "data", None) or []
        if isinstance(rows, dict):
            rows = [rows]
        return AccessRequest.from_row(rows[0]) if rows else None

    # -----------------------------------------------------
    # Reads
    # -----------------------------------------------------
    def get(self, request_id: str) -> Optional[AccessRequest]:
        """Fetch by id, soft-deleted rows included."""
        result = self._table().select("*").eq("id", request_id).limit(1).execute()
        return self._first(result)

    def find_by_agent_and_listing(self, agent_id: str, listing_id: str) -> Optional[AccessRequest]:
        result = (
            self._table()
            .select("*")
            .eq("agent_id", agent_id)
            .eq("listing_id", listing_id)
            .eq("is_deleted", False)
            .limit(1)
            .execute()
        )
        return self._first(result)

    def find_by_external_ref(self, external_ref: str) -> Optional[AccessRequest]:
        """Webhook lookup. Soft-deleted rows still reconcile."""
        result = (
            self._table()
            .select("*")
            .eq("payment_external_ref", external_ref)
            .limit(1)
            .execute()
        )
        return self._first(result)

    def list_by_agent(self, agent_id: str) -> List[AccessRequest]:
        result = (
            self._table()
            .select("*")
            .eq("agent_id", agent_id)
            .eq("is_deleted", False)
            .order("created_at", desc=True)
            .execute()
        )
        return [AccessRequest.from_row(r) for r in result.data or []]

    def list_page(self, filters: PaymentFilters) -> Tuple[List[AccessRequest], int]:
        query = self._table().select("*", count="exact")

        if not filters.include_deleted:
            query = query.eq("is_deleted", False)
        if filters.payment_status:
            query = query.eq("payment_status", filters.payment_status.value)
        if filters.access_status:
            if filters.access_status == AccessStatus.approved:
                query = query.in_("status", ["approved", "free"])
            else:
                query = query.eq("status", filters.access_status.value)

        offset = (filters.page - 1) * filters.limit
        result = (
            query.order("created_at", desc=True)
            .range(offset, offset + filters.limit - 1)
            .execute()
        )

        rows = [AccessRequest.from_row(r) for r in result.data or []]
        total = result.count if result.count is not None else len(rows)
        return rows, total

    def all_active(self) -> List[AccessRequest]:
        """Every non-deleted request (stats)."""
        result = self._table().select("*").eq("is_deleted", False).execute()
        return [AccessRequest.from_row(r) for r in result.data or []]

    def paid_between(self, start: datetime, end: datetime) -> List[AccessRequest]:
        """Succeeded payments with payment_succeeded_at in [start, end)."""
        result = (
            self._table()
            .select("*")
            .eq("is_deleted", False)
            .eq("payment_status", PaymentStatus.succeeded.value)
            .gte("payment_succeeded_at", start.isoformat())
            .lt("payment_succeeded_at", end.isoformat())
            .execute()
        )
        return [AccessRequest.from_row(r) for r in result.data or []]

    def find_stale_pending_intents(self, older_than: datetime, decided_after: datetime) -> List[AccessRequest]:
        """
        Unpaid intents untouched since `older_than`, limited to charges
        decided after `decided_after` (older payment links have expired).
        """
        result = (
            self._table()
            .select("*")
            .eq("status", AccessStatus.pending.value)
            .eq("payment_status", PaymentStatus.pending.value)
            .eq("is_deleted", False)
            .not_.is_("payment_external_ref", "null")
            .lt("updated_at", older_than.isoformat())
            .gte("decided_at", decided_after.isoformat())
            .execute()
        )
        return [AccessRequest.from_row(r) for r in result.data or []]

    # -----------------------------------------------------
    # Writes
    # -----------------------------------------------------
    def create(self, listing_id: str, agent_id: str, currency: str) -> AccessRequest:
        now = _iso(utcnow())
        row = {
            "listing_id": listing_id,
            "agent_id": agent_id,
            "status": AccessStatus.pending.value,
            "payment_amount": "0",
            "payment_currency": currency,
            "payment_status": PaymentStatus.pending.value,
            "payment_failure_count": 0,
            "payment_failed_at": [],
            "is_deleted": False,
            "deletion_history": [],
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = self._table().insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError("An access request for this listing already exists")
            raise handle_supabase_error(e, "Failed to create access request")

        created = self._first(result)
        if not created:
            raise handle_supabase_error(Exception("insert returned no rows"), "Failed to create access request")
        return created

    def apply_decision(
        self,
        request_id: str,
        status: AccessStatus,
        decision: AdminDecision,
        payment_amount: Optional[Decimal] = None,
    ) -> Optional[AccessRequest]:
        """
        Record the admin decision. Only applies while the request is still
        pending and undecided; returns None when that precondition fails.
        """
        update = {
            "status": status.value,
            "decided_by": decision.decided_by,
            "decided_at": _iso(decision.decided_at),
            "decision_notes": decision.notes,
            "decision_charge_amount": _amount(decision.charge_amount),
            "decision_is_free": decision.is_free,
            "updated_at": _iso(utcnow()),
        }
        if payment_amount is not None:
            update["payment_amount"] = _amount(payment_amount)
            update["payment_status"] = PaymentStatus.pending.value

        result = (
            self._table()
            .update(update)
            .eq("id", request_id)
            .eq("status", AccessStatus.pending.value)
            .is_("decided_at", "null")
            .eq("is_deleted", False)
            .execute()
        )
        return self._first(result)

    def set_external_ref(self, request_id: str, external_ref: str) -> Optional[AccessRequest]:
        """Attach a (new) payment intent while the request is unpaid."""
        result = (
            self._table()
            .update({
                "payment_external_ref": external_ref,
                "payment_status": PaymentStatus.pending.value,
                "updated_at": _iso(utcnow()),
            })
            .eq("id", request_id)
            .eq("status", AccessStatus.pending.value)
            .eq("is_deleted", False)
            .is_("payment_succeeded_at", "null")
            .execute()
        )
        return self._first(result)

    def backfill_external_ref(self, request_id: str, external_ref: str) -> None:
        self._table().update({"payment_external_ref": external_ref}).eq("id", request_id).is_(
            "payment_external_ref", "null"
        ).execute()

    def mark_payment_checked(self, request_id: str, at: Optional[datetime] = None) -> None:
        """Bump updated_at after a re-drive left the intent unchanged."""
        self._table().update({"updated_at": _iso(at or utcnow())}).eq("id", request_id).eq(
            "status", AccessStatus.pending.value
        ).execute()

    def mark_payment_succeeded(self, request_id: str, at: Optional[datetime] = None) -> Optional[AccessRequest]:
        """
        pending -> paid. Exactly one caller wins; replays and concurrent
        deliveries get None.
        """
        now = at or utcnow()
        result = (
            self._table()
            .update({
                "status": AccessStatus.paid.value,
                "payment_status": PaymentStatus.succeeded.value,
                "payment_succeeded_at": _iso(now),
                "updated_at": _iso(now),
            })
            .eq("id", request_id)
            .eq("status", AccessStatus.pending.value)
            .is_("payment_succeeded_at", "null")
            .execute()
        )
        return self._first(result)

    def record_payment_failure(
        self,
        request_id: str,
        max_attempts: int,
        failure_ref: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Tuple[Optional[AccessRequest], bool]:
        """
        Increment payment_failure_count with compare-and-set.

        One failure is counted per `failure_ref` (the payment intent), so
        redelivered events and the charge.failed / payment_intent.payment_failed
        pair for a single decline count once.

        Returns (request, counted). counted is False when the payment
        already succeeded, the ref was already counted or the counter is
        saturated at max_attempts.
        """
        now = at or utcnow()

        for _ in range(FAILURE_CAS_RETRIES):
            current = self.get(request_id)
            if current is None:
                raise NotFoundError("Access request not found")

            payment = current.payment
            if payment is None or payment.succeeded_at is not None or current.status != AccessStatus.pending:
                return current, False

            if failure_ref and payment.last_failure_ref == failure_ref:
                return current, False

            count = payment.failure_count
            if count >= max_attempts:
                return current, False

            failed_at = [_iso(t) for t in payment.failed_at] + [_iso(now)]
            result = (
                self._table()
                .update({
                    "payment_failure_count": count + 1,
                    "payment_status": PaymentStatus.failed.value,
                    "payment_failed_at": failed_at,
                    "payment_last_failure_ref": failure_ref,
                    "updated_at": _iso(now),
                })
                .eq("id", request_id)
                .eq("payment_failure_count", count)
                .is_("payment_succeeded_at", "null")
                .execute()
            )
            updated = self._first(result)
            if updated:
                return updated, True

            logger.info(f"Failure counter for {request_id} changed underneath us, retrying")

        raise ConflictError("Could not record payment failure, please retry")

    # -----------------------------------------------------
    # Soft delete / restore
    # -----------------------------------------------------
    def _set_deleted(
        self,
        current: AccessRequest,
        deleted: bool,
        actor: str,
        reason: Optional[str],
    ) -> Optional[AccessRequest]:
        now = utcnow()
        action = DeletionAction.soft_delete if deleted else DeletionAction.restore
        entry = DeletionHistoryEntry(actor=actor, action=action, at=now, reason=reason)
        history = [h.model_dump(mode="json") for h in current.deletion_history] + [entry.model_dump(mode="json")]

        update = {
            "is_deleted": deleted,
            "deletion_history": history,
            "updated_at": _iso(now),
        }
        if deleted:
            update.update({"deleted_at": _iso(now), "deleted_by": actor, "delete_reason": reason})
        else:
            update.update({"deleted_at": None, "deleted_by": None, "delete_reason": None})

        try:
            result = (
                self._table()
                .update(update)
                .eq("id", current.id)
                .eq("is_deleted", not deleted)
                .execute()
            )
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError("Another active access request exists for this agent and listing")
            raise handle_supabase_error(e, "Failed to update access request")

        return self._first(result)

    def soft_delete(self, current: AccessRequest, actor: str, reason: Optional[str]) -> Optional[AccessRequest]:
        return self._set_deleted(current, True, actor, reason)

    def restore(self, current: AccessRequest, actor: str, reason: Optional[str]) -> Optional[AccessRequest]:
        return self._set_deleted(current, False, actor, reason)

    # -----------------------------------------------------
    # Hard delete
    # -----------------------------------------------------
    def hard_delete(self, request_id: str) -> bool:
        result = self._table().delete().eq("id", request_id).execute()
        return bool(result.data)

    def bulk_hard_delete(self, ids: List[str]) -> List[str]:
        """Delete every id that exists; returns the ids actually removed."""
        if not ids:
            return []
        result = self._table().delete().in_("id", ids).execute()
        return [str(r["id"]) for r in result.data or []]
