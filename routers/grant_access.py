# routers/grant_access.py

from typing import List

from fastapi import APIRouter, Depends

from dependencies.auth import CurrentUser, require_admin, require_agent, requires_role
from dependencies.services import get_grant_access_engine, get_visibility_service
from models.access_request import (
    AccessRequest,
    AccessRequestCreate,
    ApproveAccessBody,
    ChargeAccessBody,
    PaymentIntentCreate,
    PaymentIntentRead,
    RejectAccessBody,
)
from models.enums import DecisionAction, UserRole
from models.listing import ListingDetail
from services.grant_access import GrantAccessEngine
from services.visibility import VisibilityService

router = APIRouter(
    prefix="/grant-access",
    tags=["Grant Access"],
)


# ============================================================
# AGENT: Request access to a listing
# ============================================================
@router.post("/request", response_model=AccessRequest, status_code=201)
def request_access(
    payload: AccessRequestCreate,
    current_user: CurrentUser = Depends(require_agent),
    engine: GrantAccessEngine = Depends(get_grant_access_engine),
):
    """
    Agent asks to see renter information for a pre-market listing.
    409 when a live request already exists for the pair.
    """
    return engine.request_access(current_user.id, payload.listing_id)


# ============================================================
# AGENT: My requests
# ============================================================
@router.get("/my-requests", response_model=List[AccessRequest])
def my_requests(
    current_user: CurrentUser = Depends(require_agent),
    engine: GrantAccessEngine = Depends(get_grant_access_engine),
):
    return engine.list_agent_requests(current_user.id)


# ============================================================
# AGENT: Listing detail (renter contact when access is granted)
# ============================================================
@router.get("/request/{listing_id}", response_model=ListingDetail)
def get_listing_detail(
    listing_id: str,
    current_user: CurrentUser = Depends(require_agent),
    visibility: VisibilityService = Depends(get_visibility_service),
):
    return visibility.get_listing_detail(current_user.id, listing_id)


# ============================================================
# AGENT: Create payment intent for a charged request
# ============================================================
@router.post("/payment/create-intent", response_model=PaymentIntentRead)
def create_payment_intent(
    payload: PaymentIntentCreate,
    current_user: CurrentUser = Depends(requires_role([UserRole.agent.value, UserRole.admin.value])),
    engine: GrantAccessEngine = Depends(get_grant_access_engine),
):
    # Admins may create an intent on the agent's behalf
    agent_id = None if current_user.is_admin else current_user.id
    return engine.create_payment_intent(payload.access_request_id, agent_id=agent_id)


# ============================================================
# ADMIN: Decisions
# ============================================================
@router.post("/admin/{request_id}/approve", response_model=AccessRequest)
def approve_request(
    request_id: str,
    payload: ApproveAccessBody = ApproveAccessBody(),
    current_user: CurrentUser = Depends(require_admin),
    engine: GrantAccessEngine = Depends(get_grant_access_engine),
):
    """Approve for free, or route to the charge path with is_free=false."""
    return engine.admin_decide(
        request_id,
        DecisionAction.approve,
        current_user.id,
        notes=payload.notes,
        is_free=payload.is_free,
        charge_amount=payload.charge_amount,
    )


@router.post("/admin/{request_id}/charge", response_model=AccessRequest)
def charge_request(
    request_id: str,
    payload: ChargeAccessBody,
    current_user: CurrentUser = Depends(require_admin),
    engine: GrantAccessEngine = Depends(get_grant_access_engine),
):
    return engine.admin_decide(
        request_id,
        DecisionAction.charge,
        current_user.id,
        notes=payload.notes,
        is_free=False,
        charge_amount=payload.charge_amount,
    )


@router.post("/admin/{request_id}/reject", response_model=AccessRequest)
def reject_request(
    request_id: str,
    payload: RejectAccessBody = RejectAccessBody(),
    current_user: CurrentUser = Depends(require_admin),
    engine: GrantAccessEngine = Depends(get_grant_access_engine),
):
    return engine.admin_decide(
        request_id,
        DecisionAction.reject,
        current_user.id,
        notes=payload.notes,
        is_free=False,
    )
