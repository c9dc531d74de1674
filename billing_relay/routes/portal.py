import logging

from fastapi import APIRouter, Depends, HTTPException

from ..errors import ProviderError
from ..identity.clerk_client import ClerkClient
from ..models import PortalSession
from ..payments.polar_client import PolarClient
from ..providers import get_clerk, get_polar
from ..security import require_user_id

logger = logging.getLogger("relay.portal")

router = APIRouter(tags=["portal"])


@router.get("/api/create-portal-session", response_model=PortalSession, summary="Customer portal URL")
async def create_portal_session(
    user_id: str = Depends(require_user_id),
    polar: PolarClient = Depends(get_polar),
    clerk: ClerkClient = Depends(get_clerk),
):
    try:
        metadata = await clerk.get_public_metadata(user_id)
        customer_id = metadata.get("customerId")
        if not customer_id:
            raise HTTPException(status_code=404, detail="No active subscription found for this user.")

        session = await polar.create_customer_session(customer_id)
    except ProviderError as e:
        logger.error("Portal session failed for user %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail="Failed to generate portal session")

    url = session.get("customer_portal_url")
    if not url:
        logger.error("Customer session for %s came back without a portal URL", customer_id)
        raise HTTPException(status_code=500, detail="Failed to generate portal session")
    return PortalSession(url=url)
