import logging

import httpx
from polar_sdk import Polar, models
from pydantic import ValidationError

from ..errors import ProviderNetworkError, ProviderUpstreamError, ProviderValidationError

logger = logging.getLogger("relay.polar")

POLAR_SERVERS = ("production", "sandbox")

PRODUCTS_PAGE_SIZE = 100

# checkout customer_metadata key linking a checkout to a Clerk user
USER_ID_KEY = "clerk_user_id"


class PolarClient:
    """Async wrapper over the Polar SDK returning plain JSON dicts and typed errors."""

    provider = "polar"

    def __init__(
        self,
        access_token: str,
        server: str = "production",
        timeout: float = 30.0,
        sdk: Polar | None = None,
    ):
        if server not in POLAR_SERVERS:
            raise ValueError(f"Unknown Polar server: {server!r}")
        self._http = None
        if sdk is None:
            self._http = httpx.AsyncClient(follow_redirects=True, timeout=timeout)
            sdk = Polar(
                access_token=access_token,
                server=server,
                async_client=self._http,
                timeout_ms=int(timeout * 1000),
            )
        self._sdk = sdk

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()

    async def _call(self, operation: str, method, **kwargs):
        try:
            return await method(**kwargs)
        except ValidationError as e:
            # raised by the SDK's request models before anything is sent
            details = e.errors(include_url=False, include_context=False)
            logger.warning("polar %s rejected locally: %s", operation, details)
            raise ProviderValidationError(self.provider, details) from e
        except models.HTTPValidationError as e:
            details = [d.model_dump(mode="json") for d in (e.data.detail or [])]
            logger.warning("polar %s rejected: %s", operation, details)
            raise ProviderValidationError(self.provider, details) from e
        except models.PolarError as e:
            logger.error("polar %s returned %s: %s", operation, e.status_code, e.body)
            raise ProviderUpstreamError(self.provider, e.status_code, e.body) from e
        except (httpx.RequestError, models.NoResponseError) as e:
            logger.error("polar %s failed: %s", operation, e)
            raise ProviderNetworkError(self.provider, str(e)) from e

    async def create_checkout(self, options: dict) -> dict:
        """
        Creates a checkout session from already-normalized (snake_case) options.
        The caller is responsible for injecting customer_metadata.
        """
        checkout = await self._call("checkouts.create", self._sdk.checkouts.create_async, request=options)
        return checkout.model_dump(mode="json")

    async def get_checkout(self, checkout_id: str) -> dict:
        checkout = await self._call("checkouts.get", self._sdk.checkouts.get_async, id=checkout_id)
        return checkout.model_dump(mode="json")

    async def create_customer_session(self, customer_id: str) -> dict:
        session = await self._call(
            "customer_sessions.create",
            self._sdk.customer_sessions.create_async,
            request={"customer_id": customer_id},
        )
        return session.model_dump(mode="json")

    async def list_products(self, is_archived: bool = False, is_recurring: bool = True) -> list[dict]:
        """Walks every page of the product catalog matching the filters."""
        items: list[dict] = []
        page = 1
        while True:
            res = await self._call(
                "products.list",
                self._sdk.products.list_async,
                is_archived=is_archived,
                is_recurring=is_recurring,
                page=page,
                limit=PRODUCTS_PAGE_SIZE,
            )
            if res is None:
                break
            items.extend(p.model_dump(mode="json") for p in res.result.items)
            if page >= res.result.pagination.max_page:
                break
            page += 1
        logger.debug("Fetched %d products over %d page(s)", len(items), page)
        return items
