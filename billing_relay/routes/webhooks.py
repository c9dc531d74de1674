import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from polar_sdk.webhooks import WebhookUnknownTypeError, WebhookVerificationError, validate_event
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..errors import ProviderError
from ..identity.clerk_client import ClerkClient
from ..models import EventType, Subscription, SubscriptionMetadata, WebhookEvent
from ..payments.polar_client import USER_ID_KEY, PolarClient
from ..providers import get_clerk, get_polar

logger = logging.getLogger("relay.webhooks")

router = APIRouter(tags=["webhooks"])


def active_metadata(subscription: Subscription) -> dict:
    return SubscriptionMetadata(
        subscriptionId=subscription.id,
        customerId=subscription.customer_id,
        plan="pro",
        status="active",
    ).model_dump()


def revoked_metadata(current: dict, subscription: Subscription) -> dict:
    """Keeps whatever else is stored; a subscriptionId already on file wins."""
    update = SubscriptionMetadata(
        subscriptionId=current.get("subscriptionId") or subscription.id,
        customerId=subscription.customer_id,
        plan="free",
        status="revoked",
    ).model_dump()
    return {**current, **update}


async def resolve_user_id(polar: PolarClient, subscription: Subscription) -> str | None:
    if not subscription.checkout_id:
        logger.warning("Subscription %s has no checkout reference", subscription.id)
        return None

    logger.info("Fetching checkout %s for subscription %s", subscription.checkout_id, subscription.id)
    checkout = await polar.get_checkout(subscription.checkout_id)
    user_id = (checkout.get("customer_metadata") or {}).get(USER_ID_KEY)
    if not user_id:
        logger.error("No %s in metadata of checkout %s", USER_ID_KEY, subscription.checkout_id)
        return None
    return user_id


async def handle_subscription_active(subscription: Subscription, polar: PolarClient, clerk: ClerkClient) -> str:
    user_id = await resolve_user_id(polar, subscription)
    if not user_id:
        return "skipped"

    logger.info("Linking subscription %s to user %s", subscription.id, user_id)
    await clerk.replace_public_metadata(user_id, active_metadata(subscription))
    return "activated"


async def handle_subscription_revoked(subscription: Subscription, polar: PolarClient, clerk: ClerkClient) -> str:
    user_id = await resolve_user_id(polar, subscription)
    if not user_id:
        return "skipped"

    # read-then-write, not atomic against concurrent deliveries for the same user
    current = await clerk.get_public_metadata(user_id)
    logger.info("Revoking subscription %s for user %s", subscription.id, user_id)
    await clerk.replace_public_metadata(user_id, revoked_metadata(current, subscription))
    return "revoked"


HANDLERS = {
    EventType.SUBSCRIPTION_ACTIVE: handle_subscription_active,
    EventType.SUBSCRIPTION_REVOKED: handle_subscription_revoked,
}


async def process_event(event: WebhookEvent, polar: PolarClient, clerk: ClerkClient) -> str:
    handler = HANDLERS.get(event.kind)
    if handler is None:
        logger.info("Ignoring event type %s", event.type)
        return "ignored"
    return await handler(Subscription.model_validate(event.data), polar, clerk)


@router.post("/webhook", status_code=status.HTTP_202_ACCEPTED, summary="Polar webhook")
async def polar_webhook(
    request: Request,
    polar: PolarClient = Depends(get_polar),
    clerk: ClerkClient = Depends(get_clerk),
    settings: Settings = Depends(get_settings),
):
    payload = await request.body()

    if not settings.polar_webhook_secret:
        logger.error("Webhook rejected: POLAR_WEBHOOK_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook signature")

    try:
        validate_event(body=payload, headers=dict(request.headers), secret=settings.polar_webhook_secret)
    except WebhookVerificationError as e:
        logger.warning("Webhook verification failed: %s", e)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook signature")
    except (WebhookUnknownTypeError, ValidationError) as e:
        # signature already passed: an event type or shape this SDK version
        # does not model; the raw JSON is read below
        logger.debug("SDK could not parse verified webhook body: %s", e)
    except ValueError as e:
        logger.warning("Verified webhook body is not JSON: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    try:
        event = WebhookEvent.model_validate_json(payload)
    except ValidationError as e:
        logger.warning("Malformed webhook body: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    logger.info("Received event: %s", event.type)

    try:
        action = await process_event(event, polar, clerk)
        logger.info("Event %s processed: %s", event.type, action)
    except (ProviderError, ValidationError) as e:
        # delivery is acknowledged either way; Polar does not retry accepted events
        logger.error("Webhook processing error for %s: %s", event.type, e, exc_info=True)

    return Response(status_code=status.HTTP_202_ACCEPTED)
