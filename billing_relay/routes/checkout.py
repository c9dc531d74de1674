import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..errors import ProviderError, ProviderValidationError
from ..payments.polar_client import USER_ID_KEY, PolarClient
from ..providers import get_polar
from ..security import require_user_id

logger = logging.getLogger("relay.checkout")

router = APIRouter(tags=["checkout"])

METADATA_KEYS = ("customerMetadata", "customer_metadata")
SUCCESS_URL_KEYS = ("successUrl", "success_url")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def success_url(frontend_url: str) -> str:
    # {CHECKOUT_ID} is substituted by Polar
    return f"{frontend_url.rstrip('/')}/?payment=success&checkout_id={{CHECKOUT_ID}}"


def build_checkout_options(payload: dict, user_id: str, frontend_url: str) -> dict:
    """
    Caller options -> Polar request body.

    Top-level keys are converted to snake_case, success_url is always ours and
    customer_metadata always carries the caller's user id.
    """
    metadata = next((payload[k] for k in METADATA_KEYS if payload.get(k)), {})
    if not isinstance(metadata, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="customer_metadata must be an object")

    options = {
        to_snake(k): v for k, v in payload.items()
        if k not in METADATA_KEYS and k not in SUCCESS_URL_KEYS
    }
    options["success_url"] = success_url(frontend_url)
    options["customer_metadata"] = {**metadata, USER_ID_KEY: user_id}
    return options


async def read_json_object(request: Request) -> dict:
    body = await request.body()
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is missing or empty")
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is not valid JSON")
    if not isinstance(payload, dict) or not payload:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is missing or empty")
    return payload


@router.post("/create-checkout", summary="Create checkout session")
async def create_checkout(
    request: Request,
    user_id: str = Depends(require_user_id),
    polar: PolarClient = Depends(get_polar),
    settings: Settings = Depends(get_settings),
):
    payload = await read_json_object(request)
    options = build_checkout_options(payload, user_id, settings.frontend_url)

    try:
        result = await polar.create_checkout(options)
    except ProviderValidationError as e:
        logger.error("Checkout input rejected for user %s: %s", user_id, e.details)
        return JSONResponse(
            status_code=422,
            content={"error": "Input validation failed", "details": e.details},
        )
    except ProviderError as e:
        logger.error("Error creating checkout session for user %s: %s", user_id, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create checkout session")

    if (result.get("customer_metadata") or {}).get(USER_ID_KEY) == user_id:
        logger.info("Checkout %s created for user %s", result.get("id"), user_id)
        return result

    logger.warning(
        "Checkout %s created, but metadata verification failed: %s",
        result.get("id"), result.get("customer_metadata"),
    )
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=result)
