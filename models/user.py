# models/user.py

from typing import Optional
from pydantic import BaseModel


# ===============================================================
# DIRECTORY MODELS (users / agent_profiles / renter_profiles)
# ===============================================================

class UserSummary(BaseModel):
    """Identity + contact data from the users table."""
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        return self.full_name or "Agent"


class AgentProfile(BaseModel):
    """
    Agent-specific flags.
    has_grant_access: bypasses per-listing approval for every listing.
    """
    user_id: str
    has_grant_access: bool = False
    email_subscription_enabled: bool = True
    brokerage_name: Optional[str] = None
    license_number: Optional[str] = None
    account_status: Optional[str] = None

    model_config = {"from_attributes": True}


class RenterContact(BaseModel):
    """Renter identity disclosed to agents that hold access."""
    user_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    email_subscription_enabled: bool = True

    model_config = {"from_attributes": True}
