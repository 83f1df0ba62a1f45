# core/email_templates.py

"""
Plain-text email + in-app copy for each grant access notification kind.
"""

from typing import Callable, Dict, Tuple

from models.notification import (
    AccessRequestedNotice,
    AccessApprovedNotice,
    AccessRejectedNotice,
    PaymentLinkNotice,
    PaymentSucceededNotice,
    PaymentFailedNotice,
    RenterAccessGrantedNotice,
)

SIGN_OFF = """
Thank you,
BeforeListed Team
"""


def _money(amount, currency: str) -> str:
    return f"{amount:.2f} {currency.upper()}"


# -----------------------------------------------------
# Email bodies
# -----------------------------------------------------
def _access_requested(n: AccessRequestedNotice) -> Tuple[str, str]:
    subject = f"Grant Access Request from {n.agent_name}"
    body = f"""
Hello,

Agent {n.agent_name} ({n.agent_email or 'no email on file'}) requested access
to renter information for "{n.listing_title}" ({n.location}).

Request ID: {n.access_request_id}
Requested at: {n.requested_at}

Approve, charge or reject the request from the admin dashboard.
{SIGN_OFF}"""
    return subject, body


def _access_approved(n: AccessApprovedNotice) -> Tuple[str, str]:
    subject = "Your access request was approved"
    body = f"""
Hello {n.agent_name},

Your request to view renter information for "{n.listing_title}" was approved
free of charge.

View the listing: {n.listing_url}
{SIGN_OFF}"""
    return subject, body


def _access_rejected(n: AccessRejectedNotice) -> Tuple[str, str]:
    subject = "Your access request was not approved"
    body = f"""
Hello {n.agent_name},

Your request to view renter information for "{n.listing_title}" was not approved.

Reason: {n.reason}

Questions? Contact {n.contact_email}.
{SIGN_OFF}"""
    return subject, body


def _payment_link(n: PaymentLinkNotice) -> Tuple[str, str]:
    subject = "Complete payment to unlock renter information"
    body = f"""
Hello {n.agent_name},

Access to renter information for "{n.listing_title}" is available for
{_money(n.amount, n.currency)}.

Pay here: {n.payment_link}
Please complete payment by {n.payment_deadline}.
{SIGN_OFF}"""
    return subject, body


def _payment_succeeded(n: PaymentSucceededNotice) -> Tuple[str, str]:
    subject = "Payment received: access granted"
    body = f"""
Hello {n.agent_name},

We received your payment of {_money(n.amount, n.currency)}.
You can now view renter information for "{n.listing_title}".

View the listing: {n.listing_url}
{SIGN_OFF}"""
    return subject, body


def _payment_failed(n: PaymentFailedNotice) -> Tuple[str, str]:
    subject = "Payment failed"
    if n.attempts_remaining > 0:
        retry = f"You have {n.attempts_remaining} attempt(s) left: {n.payment_link}"
    else:
        retry = "No payment attempts remain. Please contact support."
    body = f"""
Hello {n.agent_name},

Your payment of {_money(n.amount, n.currency)} for "{n.listing_title}" did not go through.

{retry}
{SIGN_OFF}"""
    return subject, body


def _renter_access_granted(n: RenterAccessGrantedNotice) -> Tuple[str, str]:
    subject = "An agent can now see your request"
    body = f"""
Hello {n.renter_name},

{n.agent_name} now has access to your pre-market request "{n.listing_title}"
({n.location}) and may contact you.

Agent email: {n.agent_email}
Your listing: {n.listing_url}
{SIGN_OFF}"""
    return subject, body


EMAIL_RENDERERS: Dict[str, Callable] = {
    "grant_access_requested": _access_requested,
    "grant_access_approved": _access_approved,
    "grant_access_rejected": _access_rejected,
    "grant_access_payment_link": _payment_link,
    "grant_access_payment_succeeded": _payment_succeeded,
    "grant_access_payment_failed": _payment_failed,
    "renter_access_granted": _renter_access_granted,
}


def render_email(payload) -> Tuple[str, str]:
    """Returns (subject, body) for a tagged notification payload."""
    return EMAIL_RENDERERS[payload.kind](payload)


# -----------------------------------------------------
# In-app copy: (title, message, action_url)
# -----------------------------------------------------
def render_in_app(payload) -> Tuple[str, str, str]:
    kind = payload.kind

    if kind == "grant_access_requested":
        return (
            f"Grant Access Request from {payload.agent_name}",
            f'Agent {payload.agent_name} requested access to renter information for "{payload.listing_title}" ({payload.location})',
            f"/admin/grant-access-requests/{payload.access_request_id}",
        )
    if kind == "grant_access_approved":
        return (
            "Access approved",
            f'You can now view renter information for "{payload.listing_title}"',
            f"/listings/{payload.listing_id}",
        )
    if kind == "grant_access_rejected":
        return (
            "Access request rejected",
            f'Your access request for "{payload.listing_title}" was rejected: {payload.reason}',
            f"/listings/{payload.listing_id}",
        )
    if kind == "grant_access_payment_link":
        return (
            "Payment required",
            f'Pay {_money(payload.amount, payload.currency)} to view renter information for "{payload.listing_title}"',
            f"/payment/{payload.access_request_id}",
        )
    if kind == "grant_access_payment_succeeded":
        return (
            "Payment received",
            f'Payment of {_money(payload.amount, payload.currency)} received for "{payload.listing_title}"',
            f"/listings/{payload.listing_id}",
        )
    if kind == "grant_access_payment_failed":
        return (
            "Payment failed",
            f'Payment for "{payload.listing_title}" failed ({payload.attempts_remaining} attempt(s) left)',
            f"/payment/{payload.access_request_id}",
        )
    if kind == "renter_access_granted":
        return (
            "An agent can view your request",
            f'{payload.agent_name} now has access to "{payload.listing_title}"',
            f"/renter/requests/{payload.listing_id}",
        )

    raise ValueError(f"Unknown notification kind: {kind}")
