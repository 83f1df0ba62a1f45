from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# ACCESS STATUS
# -----------------------------------------------------
class AccessStatus(BaseStrEnum):
    """
    Lifecycle of an agent's access request for one listing.

    Rows written before the approved/free merge may still carry
    "free"; it is read back as `approved`.
    """

    pending = "pending"
    approved = "approved"
    paid = "paid"
    rejected = "rejected"

    @classmethod
    def _missing_(cls, value):
        if value == LEGACY_FREE_STATUS:
            return cls.approved
        return None


LEGACY_FREE_STATUS = "free"

# Every stored value that lets an agent see renter details
GRANTED_STATUS_VALUES = [AccessStatus.approved.value, LEGACY_FREE_STATUS, AccessStatus.paid.value]


def is_granted(status) -> bool:
    return str(status) in GRANTED_STATUS_VALUES


# -----------------------------------------------------
# PAYMENT STATUS
# -----------------------------------------------------
class PaymentStatus(BaseStrEnum):
    """Status of the charge attached to an access request."""

    pending = "pending"
    succeeded = "succeeded"
    failed = "failed"


# -----------------------------------------------------
# ADMIN DECISION ACTION
# -----------------------------------------------------
class DecisionAction(BaseStrEnum):
    approve = "approve"
    charge = "charge"
    reject = "reject"


# -----------------------------------------------------
# VIEWER CLASS (listing "viewed by" buckets)
# -----------------------------------------------------
class ViewerClass(BaseStrEnum):
    grant_access_agents = "grant_access_agents"
    normal_agents = "normal_agents"


# -----------------------------------------------------
# ACCESS KIND (result of the visibility policy)
# -----------------------------------------------------
class AccessKind(BaseStrEnum):
    grant_access = "grant_access"
    approved = "approved"
    paid = "paid"
    none = "none"


# -----------------------------------------------------
# PAYMENT EVENT KIND (classified gateway webhooks)
# -----------------------------------------------------
class PaymentEventKind(BaseStrEnum):
    succeeded = "succeeded"
    failed = "failed"
    other = "other"


# -----------------------------------------------------
# RECONCILE OUTCOME
# -----------------------------------------------------
class ReconcileOutcome(BaseStrEnum):
    processed = "processed"
    duplicate = "duplicate"
    unmatched = "unmatched"
    ignored = "ignored"


# -----------------------------------------------------
# DELETION HISTORY ACTION
# -----------------------------------------------------
class DeletionAction(BaseStrEnum):
    soft_delete = "soft_delete"
    restore = "restore"


# -----------------------------------------------------
# USER ROLE
# -----------------------------------------------------
class UserRole(BaseStrEnum):
    admin = "admin"
    agent = "agent"
    renter = "renter"
