from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..errors import ProviderError
from ..models import Product
from ..payments.polar_client import PolarClient
from ..providers import get_polar

logger = logging.getLogger("relay.products")

router = APIRouter(tags=["products"])

POPULAR_MARKER = "pro"


def first_price(raw: dict) -> tuple[int, str]:
    """Amount in minor units and currency of the first listed price."""
    prices = raw.get("prices") or []
    if not prices:
        return 0, "USD"
    price = prices[0] or {}
    amount = next((price[k] for k in ("price_amount", "amount") if price.get(k) is not None), 0)
    currency = next((price[k] for k in ("price_currency", "currency") if price.get(k)), "USD")
    return int(amount), str(currency).upper()


def to_product(raw: dict) -> Product:
    amount, currency = first_price(raw)
    name = raw.get("name") or ""
    return Product(
        id=str(raw["id"]),
        name=name,
        description=raw.get("description") or None,
        price=amount / 100,
        currency=currency,
        features=[b["description"] for b in raw.get("benefits") or [] if b.get("description")],
        is_popular=POPULAR_MARKER in name.lower(),
    )


@router.get("/api/products", summary="List products (public)", response_model=List[Product])
async def list_products(polar: PolarClient = Depends(get_polar)):
    """
    Active recurring products, reshaped for the pricing page:
    id, name, description, price (major units), currency, features, is_popular.
    """
    try:
        raw_products = await polar.list_products(is_archived=False, is_recurring=True)
    except ProviderError as e:
        logger.error("Failed to list products: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch products")

    return [to_product(p) for p in raw_products]
