import logging

import httpx

from .errors import ProviderNetworkError, ProviderUpstreamError, ProviderValidationError

logger = logging.getLogger("relay.http")


def _error_details(response: httpx.Response):
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and "detail" in body:
        return body["detail"]
    return body


class ProviderHTTPClient:
    """Async JSON client for one provider API, with typed failures."""

    provider = "provider"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(self, method: str, path: str, **kwargs):
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("%s %s %s failed: %s", self.provider, method, path, e)
            raise ProviderNetworkError(self.provider, str(e)) from e

        if response.status_code == 422:
            details = _error_details(response)
            logger.warning("%s rejected %s %s: %s", self.provider, method, path, details)
            raise ProviderValidationError(self.provider, details)
        if not response.is_success:
            logger.error(
                "%s %s %s returned %s: %s",
                self.provider, method, path, response.status_code, response.text,
            )
            raise ProviderUpstreamError(self.provider, response.status_code, response.text)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderUpstreamError(self.provider, response.status_code, response.text) from e
