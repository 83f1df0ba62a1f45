# tests/fakes.py

"""
In-memory stand-ins for Supabase-backed stores, Stripe and the mailer.
They keep the same conditional-write semantics as the real repository.
"""

import hashlib
import hmac
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from models.access_request import AccessRequest, AdminDecision, DeletionHistoryEntry, PaymentRecord
from models.enums import AccessStatus, DeletionAction, PaymentStatus, ViewerClass
from models.listing import Listing, ListingActivation, ListingRef
from models.notification import EmailResult
from models.payment import GatewayIntent, IntentState
from models.user import AgentProfile, RenterContact, UserSummary


WEBHOOK_SECRET = "whsec_test_secret"


def now():
    return datetime.now(timezone.utc)


def stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Stripe-Signature header value for payload, as Stripe would compute it."""
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


# -----------------------------------------------------
# Access requests
# -----------------------------------------------------
class FakeAccessRepository:
    def __init__(self):
        self.rows: Dict[str, AccessRequest] = {}
        self._seq = 0

    def _copy(self, r: Optional[AccessRequest]) -> Optional[AccessRequest]:
        return r.model_copy(deep=True) if r else None

    def put(self, request: AccessRequest) -> AccessRequest:
        self.rows[request.id] = request.model_copy(deep=True)
        return request

    def get(self, request_id):
        return self._copy(self.rows.get(request_id))

    def find_by_agent_and_listing(self, agent_id, listing_id):
        for r in self.rows.values():
            if r.agent_id == agent_id and r.listing_id == listing_id and not r.is_deleted:
                return self._copy(r)
        return None

    def find_by_external_ref(self, external_ref):
        for r in self.rows.values():
            if r.payment and r.payment.external_ref == external_ref:
                return self._copy(r)
        return None

    def list_by_agent(self, agent_id):
        return [self._copy(r) for r in self.rows.values() if r.agent_id == agent_id and not r.is_deleted]

    def list_page(self, filters):
        rows = [r for r in self.rows.values() if filters.include_deleted or not r.is_deleted]
        if filters.payment_status:
            rows = [r for r in rows if r.payment and r.payment.payment_status == filters.payment_status]
        if filters.access_status:
            rows = [r for r in rows if r.status == filters.access_status]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        start = (filters.page - 1) * filters.limit
        return [self._copy(r) for r in rows[start:start + filters.limit]], len(rows)

    def all_active(self):
        return [self._copy(r) for r in self.rows.values() if not r.is_deleted]

    def paid_between(self, start, end):
        return [
            self._copy(r) for r in self.rows.values()
            if not r.is_deleted
            and r.payment
            and r.payment.payment_status == PaymentStatus.succeeded
            and r.payment.succeeded_at
            and start <= r.payment.succeeded_at < end
        ]

    def find_stale_pending_intents(self, older_than, decided_after):
        return [
            self._copy(r) for r in self.rows.values()
            if r.status == AccessStatus.pending
            and not r.is_deleted
            and r.payment
            and r.payment.external_ref
            and r.payment.payment_status == PaymentStatus.pending
            and (r.updated_at or r.created_at) < older_than
            and r.admin_decision is not None
            and r.admin_decision.decided_at >= decided_after
        ]

    def create(self, listing_id, agent_id, currency):
        from core.errors import ConflictError

        if self.find_by_agent_and_listing(agent_id, listing_id):
            raise ConflictError("An access request for this listing already exists")

        self._seq += 1
        ts = now()
        request = AccessRequest(
            id=f"req-{self._seq}",
            listing_id=listing_id,
            agent_id=agent_id,
            status=AccessStatus.pending,
            payment=PaymentRecord(amount=Decimal("0"), currency=currency),
            created_at=ts,
            updated_at=ts,
        )
        self.rows[request.id] = request
        return self._copy(request)

    def apply_decision(self, request_id, status, decision: AdminDecision, payment_amount=None):
        r = self.rows.get(request_id)
        if r is None or r.is_deleted or r.status != AccessStatus.pending or r.admin_decision is not None:
            return None
        r.status = status
        r.admin_decision = decision
        if payment_amount is not None:
            r.payment.amount = Decimal(payment_amount)
            r.payment.payment_status = PaymentStatus.pending
        r.updated_at = now()
        return self._copy(r)

    def set_external_ref(self, request_id, external_ref):
        r = self.rows.get(request_id)
        if r is None or r.is_deleted or r.status != AccessStatus.pending or r.payment.succeeded_at is not None:
            return None
        r.payment.external_ref = external_ref
        r.payment.payment_status = PaymentStatus.pending
        r.updated_at = now()
        return self._copy(r)

    def backfill_external_ref(self, request_id, external_ref):
        r = self.rows.get(request_id)
        if r is not None and r.payment and not r.payment.external_ref:
            r.payment.external_ref = external_ref

    def mark_payment_checked(self, request_id, at=None):
        r = self.rows.get(request_id)
        if r is not None and r.status == AccessStatus.pending:
            r.updated_at = at or now()

    def mark_payment_succeeded(self, request_id, at=None):
        r = self.rows.get(request_id)
        if r is None or r.status != AccessStatus.pending or r.payment.succeeded_at is not None:
            return None
        ts = at or now()
        r.status = AccessStatus.paid
        r.payment.payment_status = PaymentStatus.succeeded
        r.payment.succeeded_at = ts
        r.updated_at = ts
        return self._copy(r)

    def record_payment_failure(self, request_id, max_attempts, failure_ref=None, at=None) -> Tuple[Optional[AccessRequest], bool]:
        r = self.rows.get(request_id)
        if r is None or r.payment is None or r.payment.succeeded_at is not None or r.status != AccessStatus.pending:
            return self._copy(r), False
        if failure_ref and r.payment.last_failure_ref == failure_ref:
            return self._copy(r), False
        if r.payment.failure_count >= max_attempts:
            return self._copy(r), False
        ts = at or now()
        r.payment.last_failure_ref = failure_ref
        r.payment.failure_count += 1
        r.payment.payment_status = PaymentStatus.failed
        r.payment.failed_at.append(ts)
        r.updated_at = ts
        return self._copy(r), True

    def _set_deleted(self, current, deleted, actor, reason):
        r = self.rows.get(current.id)
        if r is None or r.is_deleted == deleted:
            return None
        ts = now()
        r.is_deleted = deleted
        r.deleted_at = ts if deleted else None
        r.deleted_by = actor if deleted else None
        r.delete_reason = reason if deleted else None
        r.deletion_history.append(DeletionHistoryEntry(
            actor=actor,
            action=DeletionAction.soft_delete if deleted else DeletionAction.restore,
            at=ts,
            reason=reason,
        ))
        return self._copy(r)

    def soft_delete(self, current, actor, reason):
        return self._set_deleted(current, True, actor, reason)

    def restore(self, current, actor, reason):
        return self._set_deleted(current, False, actor, reason)

    def hard_delete(self, request_id):
        return self.rows.pop(request_id, None) is not None

    def bulk_hard_delete(self, ids):
        return [i for i in ids if self.rows.pop(i, None) is not None]


# -----------------------------------------------------
# Listings + people
# -----------------------------------------------------
class FakeListingStore:
    def __init__(self):
        self.listings: Dict[str, Listing] = {}
        self.viewers = set()
        self.fail_viewer_writes = False

    def add_listing(self, listing_id, renter_id="renter-1", is_active=True, name="2BR in Brooklyn"):
        self.listings[listing_id] = Listing(
            id=listing_id,
            request_code=f"PM-{listing_id}",
            request_name=name,
            renter_id=renter_id,
            is_active=is_active,
            locations=[{"borough": "Brooklyn"}],
        )

    def get_listing_activation(self, listing_id):
        listing = self.listings.get(listing_id)
        if listing is None:
            return ListingActivation(exists=False)
        return ListingActivation(exists=True, is_active=bool(listing.is_active))

    def get_listing(self, listing_id):
        return self.listings.get(listing_id)

    def get_listing_refs(self, listing_ids):
        return {
            i: ListingRef(id=i, request_code=self.listings[i].request_code, request_name=self.listings[i].request_name)
            for i in listing_ids if i in self.listings
        }

    def add_viewer(self, listing_id, agent_id, viewer_class: ViewerClass):
        if self.fail_viewer_writes:
            raise RuntimeError("viewer store unavailable")
        self.viewers.add((listing_id, agent_id, viewer_class.value))


class FakeDirectory:
    def __init__(self):
        self.users: Dict[str, UserSummary] = {}
        self.profiles: Dict[str, AgentProfile] = {}
        self.renters: Dict[str, RenterContact] = {}

    def add_agent(self, agent_id, has_grant_access=False, subscribed=True, email=None):
        self.users[agent_id] = UserSummary(
            id=agent_id,
            full_name=f"Agent {agent_id}",
            email=email or f"{agent_id}@agents.test",
            phone="555-0100",
        )
        self.profiles[agent_id] = AgentProfile(
            user_id=agent_id,
            has_grant_access=has_grant_access,
            email_subscription_enabled=subscribed,
        )

    def add_renter(self, renter_id, subscribed=True):
        self.renters[renter_id] = RenterContact(
            user_id=renter_id,
            full_name="Rita Renter",
            email=f"{renter_id}@renters.test",
            phone="555-0199",
            email_subscription_enabled=subscribed,
        )

    def get_agent_profile(self, user_id):
        return self.profiles.get(user_id)

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_users(self, user_ids):
        return {i: self.users[i] for i in user_ids if i in self.users}

    def get_renter_contact(self, renter_id):
        return self.renters.get(renter_id)


# -----------------------------------------------------
# Stripe + notifications
# -----------------------------------------------------
class FakeGateway:
    def __init__(self):
        self.created: List[dict] = []
        self.intent_states: Dict[str, IntentState] = {}
        self.fail_with: Optional[Exception] = None

    def create_intent(self, amount, currency, metadata, idempotency_key=None, description=None):
        if self.fail_with:
            raise self.fail_with
        self.created.append({
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        })
        ref = f"pi_{len(self.created)}"
        return GatewayIntent(external_ref=ref, client_secret=f"{ref}_secret")

    def retrieve_intent(self, external_ref):
        return self.intent_states[external_ref]


class FakeDispatcher:
    def __init__(self):
        self.emails: List[tuple] = []
        self.in_app: List[tuple] = []

    def send_email(self, payload, recipient):
        if not recipient:
            return EmailResult(success=False, error="No recipient email")
        self.emails.append((payload.kind, recipient, payload))
        return EmailResult(success=True)

    def create_in_app_notification(self, recipient_id, role, payload):
        self.in_app.append((payload.kind, recipient_id, role, payload))
        return f"n-{len(self.in_app)}"

    def kinds(self):
        return [k for k, _, _ in self.emails]
