# services/visibility.py

from core.errors import ForbiddenError, NotFoundError
from core.notifications import best_effort
from models.enums import AccessKind, AccessStatus, ViewerClass, is_granted
from models.listing import ListingDetail, ViewerAccess


MSG_REQUEST_REQUIRED = "You must request access to view this listing"
MSG_PENDING_APPROVAL = "Your access request is pending admin approval"
MSG_PAYMENT_REQUIRED = "Please complete payment to access this listing"
MSG_REJECTED = "Your access request was rejected by admin"


class VisibilityService:
    """
    Decides whether an agent may see a listing's renter details.
    Evaluated on every call; nothing is cached.
    """

    def __init__(self, repository, listings, directory):
        self.repository = repository
        self.listings = listings
        self.directory = directory

    def _track(self, listing_id: str, agent_id: str, viewer_class: ViewerClass) -> None:
        best_effort(
            f"Viewer tracking for {agent_id} on {listing_id}",
            self.listings.add_viewer,
            listing_id,
            agent_id,
            viewer_class,
        )

    def resolve_viewer_access(self, agent_id: str, listing_id: str) -> ViewerAccess:
        profile = self.directory.get_agent_profile(agent_id)
        if profile is None:
            raise ForbiddenError("Agent profile not found")

        if profile.has_grant_access:
            self._track(listing_id, agent_id, ViewerClass.grant_access_agents)
            return ViewerAccess(allowed=True, access_kind=AccessKind.grant_access)

        request = self.repository.find_by_agent_and_listing(agent_id, listing_id)
        if request is None:
            return ViewerAccess(allowed=False, access_kind=AccessKind.none, message=MSG_REQUEST_REQUIRED)

        if is_granted(request.status):
            self._track(listing_id, agent_id, ViewerClass.normal_agents)
            kind = AccessKind.paid if request.status == AccessStatus.paid else AccessKind.approved
            return ViewerAccess(allowed=True, access_kind=kind)

        if request.status == AccessStatus.rejected:
            message = MSG_REJECTED
        elif request.awaiting_payment:
            message = MSG_PAYMENT_REQUIRED
        else:
            message = MSG_PENDING_APPROVAL

        return ViewerAccess(allowed=False, access_kind=AccessKind.none, message=message)

    def get_listing_detail(self, agent_id: str, listing_id: str) -> ListingDetail:
        listing = self.listings.get_listing(listing_id)
        if listing is None:
            raise NotFoundError("Listing not found")

        access = self.resolve_viewer_access(agent_id, listing_id)
        if not access.allowed:
            raise ForbiddenError(access.message)

        renter = self.directory.get_renter_contact(listing.renter_id)
        return ListingDetail(listing=listing, renter=renter, access_kind=access.access_kind)
