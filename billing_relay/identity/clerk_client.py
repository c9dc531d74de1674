import httpx

from ..http_client import ProviderHTTPClient


class ClerkClient(ProviderHTTPClient):
    """Clerk Backend API: user lookup and public metadata writes."""

    provider = "clerk"

    def __init__(
        self,
        secret_key: str,
        api_url: str = "https://api.clerk.com/v1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(api_url, secret_key, timeout=timeout, transport=transport)

    async def get_user(self, user_id: str) -> dict:
        return await self.request("GET", f"/users/{user_id}")

    async def get_public_metadata(self, user_id: str) -> dict:
        user = await self.get_user(user_id)
        return user.get("public_metadata") or {}

    async def replace_public_metadata(self, user_id: str, metadata: dict) -> dict:
        # PATCH /users/{id} replaces public_metadata as a whole, unlike the
        # /metadata endpoint which deep-merges
        return await self.request("PATCH", f"/users/{user_id}", json={"public_metadata": metadata})
