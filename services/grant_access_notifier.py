# services/grant_access_notifier.py

"""
Builds the tagged notification payloads for each grant access event and
hands them to the dispatcher (email + in-app).

Every send is independent: a failed email never blocks the in-app row
and vice versa. Callers wrap these methods in best_effort as well.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from core.logging_config import logger
from core.notifications import best_effort
from models.access_request import AccessRequest
from models.enums import UserRole
from models.listing import Listing
from models.notification import (
    AccessRequestedNotice,
    AccessApprovedNotice,
    AccessRejectedNotice,
    PaymentLinkNotice,
    PaymentSucceededNotice,
    PaymentFailedNotice,
    RenterAccessGrantedNotice,
)


class GrantAccessNotifier:
    def __init__(self, dispatcher, listings, directory, policy):
        self.dispatcher = dispatcher
        self.listings = listings
        self.directory = directory
        self.policy = policy

    # -----------------------------------------------------
    # Helpers
    # -----------------------------------------------------
    def _listing(self, listing_id: str) -> Optional[Listing]:
        return best_effort("Listing lookup for notification", self.listings.get_listing, listing_id)

    @staticmethod
    def _title(listing: Optional[Listing]) -> str:
        if listing is None:
            return "Pre-market listing"
        return listing.request_name or listing.request_code or "Pre-market listing"

    def _listing_url(self, listing_id: str) -> str:
        return f"{self.policy.client_url}/listings/{listing_id}"

    def _payment_link(self, request_id: str) -> str:
        return f"{self.policy.client_url}/payment/{request_id}"

    def _agent(self, agent_id: str):
        """(user, subscribed) for an agent; unknown agents are treated as subscribed."""
        user = self.directory.get_user(agent_id)
        profile = self.directory.get_agent_profile(agent_id)
        subscribed = profile.email_subscription_enabled if profile else True
        return user, subscribed

    def _notify_agent(self, request: AccessRequest, payload) -> None:
        user, subscribed = self._agent(request.agent_id)

        if subscribed and user and user.email:
            result = self.dispatcher.send_email(payload, user.email)
            if not result.success:
                logger.warning(f"{payload.kind} email to agent {request.agent_id} not sent: {result.error}")
        else:
            logger.info(f"Skipping {payload.kind} email for agent {request.agent_id} (unsubscribed or no email)")

        best_effort(
            f"{payload.kind} in-app notification",
            self.dispatcher.create_in_app_notification,
            request.agent_id,
            UserRole.agent.value,
            payload,
        )

    def _agent_name(self, agent_id: str) -> str:
        user = self.directory.get_user(agent_id)
        return user.display_name if user else "Agent"

    # -----------------------------------------------------
    # Admin: new request
    # -----------------------------------------------------
    def access_requested(self, request: AccessRequest) -> None:
        listing = self._listing(request.listing_id)
        agent = self.directory.get_user(request.agent_id)

        payload = AccessRequestedNotice(
            access_request_id=request.id,
            listing_id=request.listing_id,
            listing_title=self._title(listing),
            agent_id=request.agent_id,
            agent_name=agent.display_name if agent else "Agent",
            agent_email=agent.email if agent else None,
            location=listing.location_label if listing else "Multiple Locations",
            requested_at=request.created_at.isoformat(),
        )

        result = self.dispatcher.send_email(payload, self.policy.admin_email)
        if not result.success:
            logger.warning(f"Admin email for access request {request.id} not sent: {result.error}")

        best_effort(
            "Admin in-app notification",
            self.dispatcher.create_in_app_notification,
            self.policy.admin_user_id,
            UserRole.admin.value,
            payload,
        )

    # -----------------------------------------------------
    # Agent: decisions
    # -----------------------------------------------------
    def access_approved(self, request: AccessRequest) -> None:
        listing = self._listing(request.listing_id)
        payload = AccessApprovedNotice(
            access_request_id=request.id,
            listing_id=request.listing_id,
            listing_title=self._title(listing),
            agent_name=self._agent_name(request.agent_id),
            is_free=True,
            listing_url=self._listing_url(request.listing_id),
        )
        self._notify_agent(request, payload)

    def access_rejected(self, request: AccessRequest) -> None:
        listing = self._listing(request.listing_id)
        notes = request.admin_decision.notes if request.admin_decision else None
        payload = AccessRejectedNotice(
            access_request_id=request.id,
            listing_id=request.listing_id,
            listing_title=self._title(listing),
            agent_name=self._agent_name(request.agent_id),
            reason=notes or "No reason provided",
            contact_email=self.policy.support_email,
        )
        self._notify_agent(request, payload)

    def payment_link(self, request: AccessRequest) -> None:
        listing = self._listing(request.listing_id)
        deadline = datetime.now(timezone.utc) + timedelta(days=self.policy.payment_link_valid_days)
        payload = PaymentLinkNotice(
            access_request_id=request.id,
            listing_id=request.listing_id,
            listing_title=self._title(listing),
            agent_name=self._agent_name(request.agent_id),
            amount=request.payment.amount,
            currency=request.payment.currency,
            payment_link=self._payment_link(request.id),
            payment_deadline=deadline.strftime("%B %d, %Y"),
        )
        self._notify_agent(request, payload)

    # -----------------------------------------------------
    # Agent: payment outcomes
    # -----------------------------------------------------
    def payment_succeeded(self, request: AccessRequest) -> None:
        listing = self._listing(request.listing_id)
        payload = PaymentSucceededNotice(
            access_request_id=request.id,
            listing_id=request.listing_id,
            listing_title=self._title(listing),
            agent_name=self._agent_name(request.agent_id),
            amount=request.payment.amount,
            currency=request.payment.currency,
            listing_url=self._listing_url(request.listing_id),
        )
        self._notify_agent(request, payload)

    def payment_failed(self, request: AccessRequest) -> None:
        listing = self._listing(request.listing_id)
        failures = request.payment.failure_count
        payload = PaymentFailedNotice(
            access_request_id=request.id,
            listing_id=request.listing_id,
            listing_title=self._title(listing),
            agent_name=self._agent_name(request.agent_id),
            amount=request.payment.amount,
            currency=request.payment.currency,
            failure_count=failures,
            attempts_remaining=max(self.policy.max_payment_attempts - failures, 0),
            payment_link=self._payment_link(request.id),
        )
        self._notify_agent(request, payload)

    # -----------------------------------------------------
    # Renter: an agent now sees their request
    # -----------------------------------------------------
    def renter_access_granted(self, request: AccessRequest, access_type: str) -> None:
        listing = self._listing(request.listing_id)
        if listing is None or not listing.renter_id:
            logger.info(f"No renter on listing {request.listing_id}; skipping renter notification")
            return

        renter = self.directory.get_renter_contact(listing.renter_id)
        if renter is None or not renter.email_subscription_enabled or not renter.email:
            logger.info(f"Renter {listing.renter_id} unsubscribed or without email; skipping")
            return

        agent = self.directory.get_user(request.agent_id)
        payload = RenterAccessGrantedNotice(
            access_request_id=request.id,
            listing_id=request.listing_id,
            listing_title=self._title(listing),
            renter_name=renter.full_name or "there",
            agent_name=agent.display_name if agent else "An agent",
            agent_email=(agent.email if agent else None) or "",
            location=listing.location_label,
            access_type=access_type,
            listing_url=f"{self.policy.client_url}/renter/requests/{request.listing_id}",
        )

        result = self.dispatcher.send_email(payload, renter.email)
        if not result.success:
            logger.warning(f"Renter email for access request {request.id} not sent: {result.error}")
