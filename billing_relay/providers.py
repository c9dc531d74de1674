import logging

from fastapi import FastAPI, Request

from .config import Settings
from .identity.clerk_client import ClerkClient
from .payments.polar_client import PolarClient
from .security import ClerkTokenVerifier

logger = logging.getLogger("relay.providers")


def open_providers(app: FastAPI, settings: Settings) -> None:
    """Builds the process-wide provider clients once, at startup."""
    app.state.polar = PolarClient(
        settings.polar_access_token,
        server=settings.polar_server,
        timeout=settings.provider_timeout_seconds,
    )
    app.state.clerk = ClerkClient(
        settings.clerk_secret_key,
        api_url=settings.clerk_api_url,
        timeout=settings.provider_timeout_seconds,
    )
    app.state.token_verifier = ClerkTokenVerifier.from_settings(settings)

    if not settings.polar_webhook_secret:
        logger.warning("POLAR_WEBHOOK_SECRET not set: every webhook delivery will be rejected")
    logger.info("Provider clients ready (polar server=%s)", settings.polar_server)


async def close_providers(app: FastAPI) -> None:
    await app.state.polar.aclose()
    await app.state.clerk.aclose()


def get_polar(request: Request) -> PolarClient:
    return request.app.state.polar


def get_clerk(request: Request) -> ClerkClient:
    return request.app.state.clerk
