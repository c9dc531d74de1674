import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from polar_sdk import Polar
from pydantic import BaseModel, ConfigDict

from billing_relay.errors import ProviderNetworkError, ProviderUpstreamError, ProviderValidationError
from billing_relay.identity.clerk_client import ClerkClient
from billing_relay.payments.polar_client import PolarClient


def recording_transport(handler):
    seen = []

    def wrapped(request: httpx.Request):
        seen.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped), seen


class Resource(BaseModel):
    model_config = ConfigDict(extra="allow")


def polar_over(transport) -> PolarClient:
    """PolarClient backed by the real SDK, talking to a mock transport."""
    sdk = Polar(
        access_token="polar_oat_x",
        server="sandbox",
        async_client=httpx.AsyncClient(transport=transport),
    )
    return PolarClient("polar_oat_x", server="sandbox", sdk=sdk)


def products_page(ids, max_page):
    return SimpleNamespace(
        result=SimpleNamespace(
            items=[Resource(id=i) for i in ids],
            pagination=SimpleNamespace(total_count=3, max_page=max_page),
        )
    )


@pytest.mark.asyncio
async def test_polar_create_checkout_returns_plain_dict():
    create = AsyncMock(return_value=Resource(id="chk_1", customer_metadata={"clerk_user_id": "u"}))
    sdk = SimpleNamespace(checkouts=SimpleNamespace(create_async=create))
    polar = PolarClient("t", sdk=sdk)
    options = {"products": ["p"], "customer_metadata": {"clerk_user_id": "u"}}

    result = await polar.create_checkout(options)

    assert result == {"id": "chk_1", "customer_metadata": {"clerk_user_id": "u"}}
    create.assert_awaited_once_with(request=options)


@pytest.mark.asyncio
async def test_polar_create_checkout_sends_options_over_http():
    detail = [{"loc": ["body", "success_url"], "msg": "Invalid URL", "type": "url_parsing"}]
    transport, seen = recording_transport(lambda request: httpx.Response(422, json={"detail": detail}))
    polar = polar_over(transport)

    with pytest.raises(ProviderValidationError) as exc_info:
        await polar.create_checkout({"products": ["p"], "customer_metadata": {"clerk_user_id": "u"}})

    request, = seen
    assert request.method == "POST"
    assert request.url.host == "sandbox-api.polar.sh"
    assert request.url.path.rstrip("/") == "/v1/checkouts"
    assert request.headers["Authorization"] == "Bearer polar_oat_x"
    body = json.loads(request.content)
    assert body["products"] == ["p"]
    assert body["customer_metadata"] == {"clerk_user_id": "u"}

    error, = exc_info.value.details
    assert error["loc"] == ["body", "success_url"]
    assert error["msg"] == "Invalid URL"
    assert exc_info.value.provider == "polar"


@pytest.mark.asyncio
async def test_polar_invalid_options_rejected_before_sending():
    transport, seen = recording_transport(lambda request: httpx.Response(500))
    polar = polar_over(transport)

    with pytest.raises(ProviderValidationError) as exc_info:
        await polar.create_checkout({})

    assert seen == []
    assert exc_info.value.details


@pytest.mark.asyncio
async def test_polar_not_found_is_upstream_error():
    transport, _ = recording_transport(
        lambda request: httpx.Response(404, json={"error": "ResourceNotFound", "detail": "Not found"})
    )
    polar = polar_over(transport)

    with pytest.raises(ProviderUpstreamError) as exc_info:
        await polar.get_checkout("chk_missing")

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_polar_server_error_is_upstream_error():
    transport, _ = recording_transport(lambda request: httpx.Response(503, text="maintenance"))
    polar = polar_over(transport)

    with pytest.raises(ProviderUpstreamError) as exc_info:
        await polar.create_customer_session("cus_1")

    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "maintenance"


@pytest.mark.asyncio
async def test_polar_network_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    polar = polar_over(httpx.MockTransport(refuse))

    with pytest.raises(ProviderNetworkError):
        await polar.create_customer_session("cus_1")


@pytest.mark.asyncio
async def test_polar_list_products_walks_pages():
    pages = {1: products_page(["a", "b"], max_page=2), 2: products_page(["c"], max_page=2)}
    list_async = AsyncMock(side_effect=lambda **kwargs: pages[kwargs["page"]])
    polar = PolarClient("t", sdk=SimpleNamespace(products=SimpleNamespace(list_async=list_async)))

    items = await polar.list_products()

    assert [p["id"] for p in items] == ["a", "b", "c"]
    assert list_async.await_count == 2
    first_call = list_async.await_args_list[0].kwargs
    assert first_call["is_archived"] is False
    assert first_call["is_recurring"] is True
    assert first_call["page"] == 1


@pytest.mark.asyncio
async def test_polar_list_products_empty_response():
    list_async = AsyncMock(return_value=None)
    polar = PolarClient("t", sdk=SimpleNamespace(products=SimpleNamespace(list_async=list_async)))

    assert await polar.list_products() == []


def test_polar_rejects_unknown_server():
    with pytest.raises(ValueError):
        PolarClient("t", server="staging")


@pytest.mark.asyncio
async def test_clerk_replace_public_metadata_patches_user():
    transport, seen = recording_transport(
        lambda request: httpx.Response(200, json={"id": "user_1", "public_metadata": {"plan": "pro"}})
    )
    clerk = ClerkClient("sk_test_x", transport=transport)

    await clerk.replace_public_metadata("user_1", {"plan": "pro"})

    request, = seen
    assert request.method == "PATCH"
    assert str(request.url) == "https://api.clerk.com/v1/users/user_1"
    assert request.headers["Authorization"] == "Bearer sk_test_x"
    assert json.loads(request.content) == {"public_metadata": {"plan": "pro"}}


@pytest.mark.asyncio
async def test_clerk_public_metadata_defaults_to_empty():
    transport, _ = recording_transport(lambda request: httpx.Response(200, json={"id": "user_1", "public_metadata": None}))
    clerk = ClerkClient("sk_test_x", transport=transport)

    assert await clerk.get_public_metadata("user_1") == {}


@pytest.mark.asyncio
async def test_clerk_server_error():
    transport, _ = recording_transport(lambda request: httpx.Response(502, text="bad gateway"))
    clerk = ClerkClient("sk_test_x", transport=transport)

    with pytest.raises(ProviderUpstreamError) as exc_info:
        await clerk.get_user("user_1")

    assert exc_info.value.body == "bad gateway"
