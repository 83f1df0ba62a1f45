# dependencies/services.py

"""
FastAPI dependency factories wiring the services to Supabase, Stripe and
settings. Tests replace them through app.dependency_overrides.
"""

from fastapi import Depends, HTTPException

from core.config import settings
from core.notifications import NotificationDispatcher
from core.stripe_helpers import StripePaymentGateway
from core.supabase_client import get_supabase_client
from services.access_repository import AccessRequestRepository
from services.directory import AgentDirectory, ListingStore
from services.grant_access import GrantAccessEngine, GrantAccessPolicy
from services.grant_access_notifier import GrantAccessNotifier
from services.payment_admin import PaymentAdminService
from services.visibility import VisibilityService


def _client():
    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")
    return client


def get_payment_gateway() -> StripePaymentGateway:
    return StripePaymentGateway.from_settings()


def build_grant_access_engine(client, gateway=None) -> GrantAccessEngine:
    policy = GrantAccessPolicy.from_settings()
    listings = ListingStore(client)
    directory = AgentDirectory(client)
    notifier = GrantAccessNotifier(NotificationDispatcher(client), listings, directory, policy)

    return GrantAccessEngine(
        repository=AccessRequestRepository(client),
        listings=listings,
        directory=directory,
        gateway=gateway or StripePaymentGateway.from_settings(),
        notifier=notifier,
        policy=policy,
    )


def get_grant_access_engine(gateway: StripePaymentGateway = Depends(get_payment_gateway)) -> GrantAccessEngine:
    return build_grant_access_engine(_client(), gateway=gateway)


def get_visibility_service() -> VisibilityService:
    client = _client()
    return VisibilityService(
        repository=AccessRequestRepository(client),
        listings=ListingStore(client),
        directory=AgentDirectory(client),
    )


def get_payment_admin_service() -> PaymentAdminService:
    client = _client()
    return PaymentAdminService(
        repository=AccessRequestRepository(client),
        listings=ListingStore(client),
        directory=AgentDirectory(client),
        bulk_delete_limit=settings.BULK_DELETE_LIMIT,
        currency=settings.GRANT_ACCESS_CURRENCY,
    )
