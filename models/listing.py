# models/listing.py

from typing import Optional, List, Any
from datetime import datetime
from pydantic import BaseModel, Field

from models.enums import AccessKind
from models.user import RenterContact


class ListingActivation(BaseModel):
    exists: bool
    is_active: bool = False


class Listing(BaseModel):
    """A renter's pre-market request as stored in pre_market_requests."""
    id: str
    request_code: Optional[str] = None
    request_name: Optional[str] = None
    renter_id: Optional[str] = None
    is_active: Optional[bool] = False
    description: Optional[str] = None
    locations: Optional[List[Any]] = None
    price_range: Optional[dict] = None
    bedrooms: Optional[List[Any]] = None
    bathrooms: Optional[List[Any]] = None
    moving_date_range: Optional[dict] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @property
    def location_label(self) -> str:
        boroughs = []
        for loc in self.locations or []:
            if isinstance(loc, dict) and loc.get("borough"):
                boroughs.append(loc["borough"])
            elif isinstance(loc, str):
                boroughs.append(loc)
        return ", ".join(boroughs) or "Multiple Locations"


class ListingRef(BaseModel):
    id: str
    request_code: Optional[str] = None
    request_name: Optional[str] = None


class ViewerAccess(BaseModel):
    """Outcome of the visibility policy for one (agent, listing)."""
    allowed: bool
    access_kind: AccessKind
    message: Optional[str] = None


class ListingDetail(BaseModel):
    listing: Listing
    renter: Optional[RenterContact] = None
    access_kind: AccessKind
