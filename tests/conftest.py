import base64
import os

import pytest

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")
os.environ.setdefault("POLAR_WEBHOOK_SECRET", "polar-webhook-secret")
os.environ.setdefault("POLAR_ACCESS_TOKEN", "polar_oat_test")
os.environ.setdefault("CLERK_SECRET_KEY", "sk_test_x")
os.environ.setdefault(
    "CLERK_PUBLISHABLE_KEY",
    "pk_test_" + base64.b64encode(b"clerk.example.com$").decode().rstrip("="),
)

from fastapi.testclient import TestClient  # noqa: E402

from billing_relay.errors import ProviderUpstreamError  # noqa: E402
from billing_relay.main import app  # noqa: E402
from billing_relay.providers import get_clerk, get_polar  # noqa: E402
from billing_relay.security import get_token_verifier  # noqa: E402

TOKENS = {"token-alice": "user_alice", "token-bob": "user_bob"}


class FakePolar:
    def __init__(self):
        self.calls = []
        self.checkouts = {}
        self.products = []
        self.fail_with = None
        self.echo_metadata = True

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail_with is not None:
            raise self.fail_with

    async def create_checkout(self, options):
        self._record("create_checkout", options)
        metadata = options.get("customer_metadata") if self.echo_metadata else {}
        return {"id": "chk_1", "url": "https://sandbox.polar.sh/checkout/chk_1", "customer_metadata": metadata}

    async def get_checkout(self, checkout_id):
        self._record("get_checkout", checkout_id)
        if checkout_id not in self.checkouts:
            raise ProviderUpstreamError("polar", 404, "not found")
        return self.checkouts[checkout_id]

    async def create_customer_session(self, customer_id):
        self._record("create_customer_session", customer_id)
        return {"customer_portal_url": f"https://sandbox.polar.sh/portal/{customer_id}"}

    async def list_products(self, is_archived=False, is_recurring=True):
        self._record("list_products", is_archived, is_recurring)
        return self.products


class FakeClerk:
    def __init__(self):
        self.calls = []
        self.metadata = {}
        self.fail_with = None

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail_with is not None:
            raise self.fail_with

    async def get_public_metadata(self, user_id):
        self._record("get_public_metadata", user_id)
        return dict(self.metadata.get(user_id, {}))

    async def replace_public_metadata(self, user_id, metadata):
        self._record("replace_public_metadata", user_id, metadata)
        self.metadata[user_id] = dict(metadata)
        return {"id": user_id, "public_metadata": metadata}

    @property
    def writes(self):
        return [c for c in self.calls if c[0] == "replace_public_metadata"]


class FakeVerifier:
    def verify(self, token):
        return TOKENS.get(token)


@pytest.fixture
def polar():
    return FakePolar()


@pytest.fixture
def clerk():
    return FakeClerk()


@pytest.fixture
def client(polar, clerk):
    app.dependency_overrides[get_polar] = lambda: polar
    app.dependency_overrides[get_clerk] = lambda: clerk
    app.dependency_overrides[get_token_verifier] = lambda: FakeVerifier()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer token-alice"}
