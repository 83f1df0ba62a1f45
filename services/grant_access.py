# services/grant_access.py

"""
Grant access workflow.

An agent requests access to a renter's pre-market listing, an admin
approves it for free, charges for it or rejects it, and charged requests
become `paid` once Stripe confirms the payment.

    pending --approve(free)--> approved
    pending --charge--> pending (awaiting payment) --webhook success--> paid
    pending --reject--> rejected
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from core.config import settings
from core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentGatewayError,
)
from core.logging_config import logger
from core.notifications import best_effort, send_webhook_message
from models.access_request import AccessRequest, AdminDecision, PaymentIntentRead, ReconcileResult
from models.enums import (
    AccessStatus,
    DecisionAction,
    PaymentEventKind,
    ReconcileOutcome,
    ViewerClass,
)
from models.payment import PaymentEvent


# -----------------------------------------------------
# Policy (configuration snapshot)
# -----------------------------------------------------
class GrantAccessPolicy(BaseModel):
    currency: str = "USD"
    max_payment_attempts: int = 3
    payment_link_valid_days: int = 7
    admin_email: Optional[str] = None
    admin_user_id: Optional[str] = None
    support_email: str = "support@beforelisted.com"
    client_url: str = ""

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls) -> "GrantAccessPolicy":
        return cls(
            currency=settings.GRANT_ACCESS_CURRENCY,
            max_payment_attempts=settings.MAX_PAYMENT_ATTEMPTS,
            payment_link_valid_days=settings.PAYMENT_LINK_VALID_DAYS,
            admin_email=settings.ADMIN_NOTIFICATION_EMAIL,
            admin_user_id=settings.ADMIN_NOTIFICATION_USER_ID,
            support_email=settings.SUPPORT_EMAIL,
            client_url=(settings.CLIENT_URL or "").rstrip("/"),
        )


def idempotency_key_for(request: AccessRequest) -> str:
    """One key per (request, attempt) so double submissions reuse the intent."""
    attempt = request.payment.failure_count if request.payment else 0
    return f"access-{request.id}-attempt-{attempt}"


# -----------------------------------------------------
# Engine
# -----------------------------------------------------
class GrantAccessEngine:
    def __init__(
        self,
        repository,
        listings,
        directory,
        gateway,
        notifier,
        policy: GrantAccessPolicy,
        alert: Callable[[str], None] = send_webhook_message,
    ):
        self.repository = repository
        self.listings = listings
        self.directory = directory
        self.gateway = gateway
        self.notifier = notifier
        self.policy = policy
        self.alert = alert

    def _get_or_404(self, request_id: str) -> AccessRequest:
        request = self.repository.get(request_id)
        if request is None:
            raise NotFoundError("Access request not found")
        return request

    def _grant_viewer(self, request: AccessRequest) -> None:
        best_effort(
            f"Viewer tracking for {request.agent_id} on {request.listing_id}",
            self.listings.add_viewer,
            request.listing_id,
            request.agent_id,
            ViewerClass.normal_agents,
        )

    # =====================================================
    # RequestAccess
    # =====================================================
    def request_access(self, agent_id: str, listing_id: str) -> AccessRequest:
        activation = self.listings.get_listing_activation(listing_id)
        if not activation.exists:
            raise NotFoundError("Listing not found")
        if not activation.is_active:
            raise ForbiddenError("Listing is not active")

        existing = self.repository.find_by_agent_and_listing(agent_id, listing_id)
        if existing:
            if existing.status in (AccessStatus.approved, AccessStatus.paid):
                raise ConflictError("You already have access to this listing")
            raise ConflictError(
                f"You have already requested access to this listing. "
                f"Current status: {existing.status}. "
                f"Please wait for the admin decision or contact support."
            )

        request = self.repository.create(listing_id, agent_id, self.policy.currency)
        logger.info(f"Access request {request.id} created: agent {agent_id} -> listing {listing_id}")

        best_effort("Admin notification for new access request", self.notifier.access_requested, request)
        return request

    def list_agent_requests(self, agent_id: str) -> List[AccessRequest]:
        return self.repository.list_by_agent(agent_id)

    # =====================================================
    # AdminDecide
    # =====================================================
    def admin_decide(
        self,
        request_id: str,
        action,
        admin_id: str,
        notes: Optional[str] = None,
        is_free: bool = True,
        charge_amount: Optional[Decimal] = None,
    ) -> AccessRequest:
        try:
            action = DecisionAction(action)
        except ValueError:
            raise BadRequestError(f"Unknown action: {action}. Use approve, charge or reject")

        current = self._get_or_404(request_id)
        if current.is_deleted:
            raise NotFoundError("Access request not found")

        if action == DecisionAction.approve and not is_free:
            action = DecisionAction.charge

        now = datetime.now(timezone.utc)
        payment_amount = None

        if action == DecisionAction.reject:
            status = AccessStatus.rejected
            decision = AdminDecision(decided_by=admin_id, decided_at=now, notes=notes, is_free=False)
        elif action == DecisionAction.approve:
            status = AccessStatus.approved
            decision = AdminDecision(decided_by=admin_id, decided_at=now, notes=notes, is_free=True)
        else:
            if charge_amount is None or Decimal(charge_amount) <= 0:
                raise BadRequestError("charge_amount must be greater than 0")
            status = AccessStatus.pending
            payment_amount = Decimal(charge_amount)
            decision = AdminDecision(
                decided_by=admin_id,
                decided_at=now,
                notes=notes,
                charge_amount=payment_amount,
                is_free=False,
            )

        updated = self.repository.apply_decision(current.id, status, decision, payment_amount=payment_amount)
        if updated is None:
            latest = self.repository.get(current.id) or current
            raise ConflictError(f"Access request has already been decided (current status: {latest.status})")

        logger.info(f"Access request {updated.id}: admin {admin_id} -> {action}")

        if action == DecisionAction.approve:
            self._grant_viewer(updated)
            best_effort("Approval notification", self.notifier.access_approved, updated)
        elif action == DecisionAction.reject:
            best_effort("Rejection notification", self.notifier.access_rejected, updated)
        else:
            best_effort("Payment link notification", self.notifier.payment_link, updated)

        return updated

    # =====================================================
    # CreatePaymentIntent
    # =====================================================
    def create_payment_intent(self, request_id: str, agent_id: Optional[str] = None) -> PaymentIntentRead:
        request = self._get_or_404(request_id)
        if request.is_deleted:
            raise NotFoundError("Access request not found")

        if agent_id is not None and request.agent_id != agent_id:
            raise ForbiddenError("This access request belongs to another agent")
        if request.status != AccessStatus.pending or not request.has_billable_payment:
            raise BadRequestError("This access request does not require payment")
        if request.payment.succeeded_at is not None:
            raise ConflictError("Payment has already been completed")
        if request.payment.failure_count >= self.policy.max_payment_attempts:
            raise BadRequestError("Maximum payment attempts reached. Please contact support.")

        payment = request.payment
        try:
            intent = self.gateway.create_intent(
                amount=payment.amount,
                currency=payment.currency,
                metadata={
                    "access_request_id": request.id,
                    "agent_id": request.agent_id,
                    "listing_id": request.listing_id,
                },
                idempotency_key=idempotency_key_for(request),
                description=f"Renter information access for listing {request.listing_id}",
            )
        except Exception as e:
            logger.error(f"Payment intent creation failed for {request.id}: {e}", exc_info=True)
            raise PaymentGatewayError("Payment provider error, please try again")

        stored = self.repository.set_external_ref(request.id, intent.external_ref)
        if stored is None:
            raise ConflictError("Access request changed while creating the payment, please retry")

        return PaymentIntentRead(
            access_request_id=request.id,
            client_secret=intent.client_secret,
            amount=payment.amount,
            currency=payment.currency,
        )

    # =====================================================
    # ReconcileWebhookEvent
    # =====================================================
    def _correlate(self, event: PaymentEvent) -> Optional[AccessRequest]:
        if event.external_ref:
            request = self.repository.find_by_external_ref(event.external_ref)
            if request:
                return request

        request_id = event.access_request_id
        if not request_id:
            return None

        request = self.repository.get(request_id)
        if request and event.external_ref and not (request.payment and request.payment.external_ref):
            best_effort(
                f"Backfilling payment ref on {request.id}",
                self.repository.backfill_external_ref,
                request.id,
                event.external_ref,
            )
        return request

    def reconcile_webhook_event(self, event: PaymentEvent) -> ReconcileResult:
        if event.kind == PaymentEventKind.other:
            logger.info(f"Stripe event {event.event_type} ({event.event_id}) logged, no action")
            return ReconcileResult(outcome=ReconcileOutcome.ignored, event_type=event.event_type)

        request = self._correlate(event)
        if request is None:
            message = (
                f"Unmatched Stripe {event.event_type} event {event.event_id} "
                f"(ref={event.external_ref}, access_request_id={event.access_request_id})"
            )
            logger.error(message)
            best_effort("Unmatched payment alert", self.alert, message)
            return ReconcileResult(outcome=ReconcileOutcome.unmatched, event_type=event.event_type)

        if event.kind == PaymentEventKind.succeeded:
            return self._on_success(request, event)
        return self._on_failure(request, event)

    def _on_success(self, request: AccessRequest, event: PaymentEvent) -> ReconcileResult:
        updated = self.repository.mark_payment_succeeded(request.id)
        if updated is None:
            logger.info(f"Payment success for {request.id} already applied ({event.event_type})")
            return ReconcileResult(
                outcome=ReconcileOutcome.duplicate,
                event_type=event.event_type,
                access_request_id=request.id,
            )

        logger.info(f"Access request {request.id} paid ({event.event_type})")
        self._grant_viewer(updated)
        best_effort("Payment success notification", self.notifier.payment_succeeded, updated)
        best_effort("Renter access notification", self.notifier.renter_access_granted, updated, "paid")

        return ReconcileResult(
            outcome=ReconcileOutcome.processed,
            event_type=event.event_type,
            access_request_id=request.id,
        )

    def _on_failure(self, request: AccessRequest, event: PaymentEvent) -> ReconcileResult:
        if request.payment and request.payment.succeeded_at is not None:
            logger.info(f"Ignoring {event.event_type} for already-paid request {request.id}")
            return ReconcileResult(
                outcome=ReconcileOutcome.ignored,
                event_type=event.event_type,
                access_request_id=request.id,
            )

        updated, counted = self.repository.record_payment_failure(
            request.id,
            self.policy.max_payment_attempts,
            failure_ref=event.external_ref or event.event_id,
        )
        if not counted:
            logger.info(f"Payment failure for {request.id} not counted ({event.event_type})")
            return ReconcileResult(
                outcome=ReconcileOutcome.ignored,
                event_type=event.event_type,
                access_request_id=request.id,
            )

        logger.warning(
            f"Payment failed for {request.id}: "
            f"{updated.payment.failure_count}/{self.policy.max_payment_attempts} attempts"
        )
        best_effort("Payment failure notification", self.notifier.payment_failed, updated)

        return ReconcileResult(
            outcome=ReconcileOutcome.processed,
            event_type=event.event_type,
            access_request_id=request.id,
        )

    # =====================================================
    # Re-drive (stale intents)
    # =====================================================
    def redrive_payment_intent(self, external_ref: str) -> ReconcileResult:
        """Ask Stripe for the intent's state and reconcile it like a webhook."""
        state = self.gateway.retrieve_intent(external_ref)

        kind = PaymentEventKind.other
        if state.status == "succeeded":
            kind = PaymentEventKind.succeeded
        elif state.status == "canceled" or (state.status == "requires_payment_method" and state.has_payment_error):
            kind = PaymentEventKind.failed

        event = PaymentEvent(
            kind=kind,
            event_type=f"redrive.{state.status}",
            external_ref=state.external_ref,
            metadata=state.metadata,
        )
        return self.reconcile_webhook_event(event)

    def sweep_stale_intents(self, stale_minutes: int) -> Dict[str, int]:
        """
        Re-drive unpaid intents with no webhook for `stale_minutes`.

        An intent that is still open is stamped as checked so the next sweep
        waits another `stale_minutes`. Charges older than the payment link
        validity are left alone.
        """
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=stale_minutes)
        decided_after = now - timedelta(days=self.policy.payment_link_valid_days)
        stale = self.repository.find_stale_pending_intents(cutoff, decided_after)

        counts: Dict[str, int] = {}
        for request in stale:
            result = best_effort(
                f"Re-drive payment intent for {request.id}",
                self.redrive_payment_intent,
                request.payment.external_ref,
            )
            key = result.outcome.value if result else "error"
            if result is None or result.outcome != ReconcileOutcome.processed:
                best_effort(
                    f"Marking {request.id} as checked",
                    self.repository.mark_payment_checked,
                    request.id,
                    now,
                )
            counts[key] = counts.get(key, 0) + 1

        logger.info(f"Stale intent sweep: {len(stale)} checked {counts}")
        return counts
