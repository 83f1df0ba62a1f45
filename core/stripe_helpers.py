# core/stripe_helpers.py

import json
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict

import stripe

from core.config import settings
from core.errors import BadRequestError
from core.logging_config import logger
from models.enums import PaymentEventKind
from models.payment import GatewayIntent, IntentState, PaymentEvent


# -----------------------------------------------------
# Event classification tables
# -----------------------------------------------------
SUCCESS_EVENT_TYPES = {
    "payment_intent.succeeded",
    "charge.succeeded",
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
}

FAILURE_EVENT_TYPES = {
    "payment_intent.payment_failed",
    "payment_intent.canceled",
    "charge.failed",
    "checkout.session.async_payment_failed",
}


def to_minor_units(amount: Decimal) -> int:
    """Stripe expects the smallest currency unit (cents for USD)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _as_dict(obj) -> dict:
    """Plain dict view of a StripeObject (no longer a dict subclass in recent SDKs)."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {}


def _intent_id(value) -> Optional[str]:
    """payment_intent may arrive as an id string or an expanded object."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    return _as_dict(value).get("id")


def classify_event(event) -> PaymentEvent:
    """
    Reduce a Stripe event (stripe.Event or plain dict) to a PaymentEvent.

    payment_intent.* events carry the intent itself; charge and
    checkout.session events reference it through `payment_intent`.
    """
    event = _as_dict(event)
    event_type = event.get("type") or "unknown"
    obj = _as_dict(_as_dict(event.get("data")).get("object"))
    metadata = {k: str(v) for k, v in _as_dict(obj.get("metadata")).items()}

    if event_type.startswith("payment_intent."):
        external_ref = obj.get("id")
    else:
        external_ref = _intent_id(obj.get("payment_intent"))

    kind = PaymentEventKind.other
    if event_type in SUCCESS_EVENT_TYPES:
        kind = PaymentEventKind.succeeded
        # Delayed payment methods complete the session before the money moves
        if event_type == "checkout.session.completed" and obj.get("payment_status") not in (None, "paid"):
            kind = PaymentEventKind.other
    elif event_type in FAILURE_EVENT_TYPES:
        kind = PaymentEventKind.failed

    return PaymentEvent(
        kind=kind,
        event_type=event_type,
        event_id=event.get("id"),
        external_ref=external_ref,
        metadata=metadata,
    )


class StripePaymentGateway:
    """
    Thin adapter over the Stripe SDK.
    Keys are read once at construction; nothing else in the app talks to Stripe.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str] = None,
        allow_unsigned_webhooks: bool = False,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.allow_unsigned_webhooks = allow_unsigned_webhooks

    @classmethod
    def from_settings(cls) -> "StripePaymentGateway":
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            allow_unsigned_webhooks=settings.ENV == "development",
        )

    def get_stripe_client(self):
        """Get Stripe module configured with the secret key."""
        if not self.secret_key:
            raise RuntimeError("Stripe secret key not configured")

        stripe.api_key = self.secret_key
        return stripe

    # -------------------------------------------------
    # Payment intents
    # -------------------------------------------------
    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
        description: Optional[str] = None,
    ) -> GatewayIntent:
        stripe_client = self.get_stripe_client()

        intent = stripe_client.PaymentIntent.create(
            amount=to_minor_units(amount),
            currency=currency.lower(),
            metadata=metadata,
            description=description,
            automatic_payment_methods={"enabled": True},
            idempotency_key=idempotency_key,
        )

        logger.info(f"Payment intent created: {intent.id} ({metadata})")
        return GatewayIntent(external_ref=intent.id, client_secret=intent.client_secret)

    def retrieve_intent(self, external_ref: str) -> IntentState:
        stripe_client = self.get_stripe_client()
        intent = _as_dict(stripe_client.PaymentIntent.retrieve(external_ref))

        return IntentState(
            external_ref=intent.get("id") or external_ref,
            status=intent.get("status") or "unknown",
            has_payment_error=bool(intent.get("last_payment_error")),
            metadata={k: str(v) for k, v in _as_dict(intent.get("metadata")).items()},
        )

    # -------------------------------------------------
    # Webhooks
    # -------------------------------------------------
    def parse_webhook(self, payload: bytes, signature: Optional[str]):
        """
        Verify the Stripe-Signature header and return the event.
        Raises BadRequestError for bad payloads or signatures.
        """
        if not self.webhook_secret:
            if not self.allow_unsigned_webhooks:
                raise BadRequestError("Webhook signing secret not configured")

            logger.warning("Stripe webhook secret not configured - signature verification disabled")
            try:
                return stripe.Event.construct_from(json.loads(payload), self.secret_key)
            except ValueError as e:
                raise BadRequestError(f"Invalid webhook payload: {e}")

        if not signature:
            raise BadRequestError("Missing Stripe-Signature header")

        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            logger.error(f"Invalid payload in webhook: {e}")
            raise BadRequestError("Invalid webhook payload")
        except stripe.SignatureVerificationError as e:
            logger.error(f"Invalid signature in webhook: {e}")
            raise BadRequestError("Invalid webhook signature")

    def classify(self, event) -> PaymentEvent:
        return classify_event(event)
