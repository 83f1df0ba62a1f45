# -------------------------
# Enums
# -------------------------
from .enums import (
    AccessStatus,
    PaymentStatus,
    DecisionAction,
    ViewerClass,
    AccessKind,
    PaymentEventKind,
    ReconcileOutcome,
    DeletionAction,
    UserRole,
    GRANTED_STATUS_VALUES,
    is_granted,
)

# -------------------------
# Access Request Models
# -------------------------
from .access_request import (
    AccessRequest,
    PaymentRecord,
    AdminDecision,
    DeletionHistoryEntry,
    AccessRequestCreate,
    PaymentIntentRead,
    ReconcileResult,
)

# -------------------------
# Listing / Directory Models
# -------------------------
from .listing import Listing, ListingActivation, ListingRef, ViewerAccess, ListingDetail
from .user import UserSummary, AgentProfile, RenterContact

# -------------------------
# Payments
# -------------------------
from .payment import GatewayIntent, IntentState, PaymentEvent

__all__ = [
    # enums
    "AccessStatus",
    "PaymentStatus",
    "DecisionAction",
    "ViewerClass",
    "AccessKind",
    "PaymentEventKind",
    "ReconcileOutcome",
    "DeletionAction",
    "UserRole",
    "GRANTED_STATUS_VALUES",
    "is_granted",

    # access requests
    "AccessRequest",
    "PaymentRecord",
    "AdminDecision",
    "DeletionHistoryEntry",
    "AccessRequestCreate",
    "PaymentIntentRead",
    "ReconcileResult",

    # listings / people
    "Listing",
    "ListingActivation",
    "ListingRef",
    "ViewerAccess",
    "ListingDetail",
    "UserSummary",
    "AgentProfile",
    "RenterContact",

    # payments
    "GatewayIntent",
    "IntentState",
    "PaymentEvent",
]
