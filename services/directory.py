# services/directory.py

"""
Read access to listings and people, plus the listing "viewed by" buckets.
"""

from typing import Optional, List, Dict

from core.logging_config import logger
from models.enums import ViewerClass
from models.listing import Listing, ListingActivation, ListingRef
from models.user import UserSummary, AgentProfile, RenterContact


def _rows(result) -> list:
    rows = getattr(result, "data", None) or []
    return [rows] if isinstance(rows, dict) else rows


# -----------------------------------------------------
# Listings (pre_market_requests)
# -----------------------------------------------------
class ListingStore:
    TABLE = "pre_market_requests"
    VIEWERS_TABLE = "listing_viewers"

    def __init__(self, client):
        self.client = client

    def get_listing_activation(self, listing_id: str) -> ListingActivation:
        rows = _rows(
            self.client.table(self.TABLE).select("id, is_active").eq("id", listing_id).limit(1).execute()
        )
        if not rows:
            return ListingActivation(exists=False)
        return ListingActivation(exists=True, is_active=bool(rows[0].get("is_active")))

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        rows = _rows(self.client.table(self.TABLE).select("*").eq("id", listing_id).limit(1).execute())
        return Listing(**rows[0]) if rows else None

    def get_listing_refs(self, listing_ids: List[str]) -> Dict[str, ListingRef]:
        ids = sorted({i for i in listing_ids if i})
        if not ids:
            return {}

        rows = _rows(
            self.client.table(self.TABLE)
            .select("id, request_code, request_name")
            .in_("id", ids)
            .execute()
        )
        return {str(r["id"]): ListingRef(**r) for r in rows}

    def add_viewer(self, listing_id: str, agent_id: str, viewer_class: ViewerClass) -> None:
        """Set-add; a repeat insert is ignored by the unique constraint."""
        self.client.table(self.VIEWERS_TABLE).upsert(
            {
                "listing_id": listing_id,
                "agent_id": agent_id,
                "viewer_class": viewer_class.value,
            },
            on_conflict="listing_id,agent_id,viewer_class",
            ignore_duplicates=True,
        ).execute()
        logger.debug(f"Agent {agent_id} recorded in {viewer_class} for listing {listing_id}")

    def get_viewers(self, listing_id: str, viewer_class: ViewerClass) -> List[str]:
        rows = _rows(
            self.client.table(self.VIEWERS_TABLE)
            .select("agent_id")
            .eq("listing_id", listing_id)
            .eq("viewer_class", viewer_class.value)
            .execute()
        )
        return [str(r["agent_id"]) for r in rows]


# -----------------------------------------------------
# People (users / agent_profiles / renter_profiles)
# -----------------------------------------------------
class AgentDirectory:
    def __init__(self, client):
        self.client = client

    def get_agent_profile(self, user_id: str) -> Optional[AgentProfile]:
        rows = _rows(
            self.client.table("agent_profiles").select("*").eq("user_id", user_id).limit(1).execute()
        )
        return AgentProfile(**rows[0]) if rows else None

    def get_agent_profiles(self, user_ids: List[str]) -> Dict[str, AgentProfile]:
        ids = sorted({i for i in user_ids if i})
        if not ids:
            return {}
        rows = _rows(self.client.table("agent_profiles").select("*").in_("user_id", ids).execute())
        return {str(r["user_id"]): AgentProfile(**r) for r in rows}

    def get_user(self, user_id: str) -> Optional[UserSummary]:
        rows = _rows(
            self.client.table("users")
            .select("id, full_name, email, phone")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        return UserSummary(**rows[0]) if rows else None

    def get_users(self, user_ids: List[str]) -> Dict[str, UserSummary]:
        ids = sorted({i for i in user_ids if i})
        if not ids:
            return {}
        rows = _rows(
            self.client.table("users").select("id, full_name, email, phone").in_("id", ids).execute()
        )
        return {str(r["id"]): UserSummary(**r) for r in rows}

    def get_renter_contact(self, renter_id: Optional[str]) -> Optional[RenterContact]:
        if not renter_id:
            return None

        user = self.get_user(renter_id)
        if user is None:
            return None

        prefs = _rows(
            self.client.table("renter_profiles")
            .select("email_subscription_enabled")
            .eq("user_id", renter_id)
            .limit(1)
            .execute()
        )
        subscribed = True
        if prefs and prefs[0].get("email_subscription_enabled") is not None:
            subscribed = bool(prefs[0]["email_subscription_enabled"])

        return RenterContact(
            user_id=user.id,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            email_subscription_enabled=subscribed,
        )
