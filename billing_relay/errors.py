"""Failures raised by the provider clients.

Routes map these onto HTTP statuses: a validation error becomes 422, the
rest become a generic 500.
"""


class ProviderError(Exception):
    """Base class for any failed call to an external provider."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class ProviderValidationError(ProviderError):
    """The provider rejected our input (HTTP 422)."""

    def __init__(self, provider: str, details):
        super().__init__(provider, "input validation failed")
        self.details = details


class ProviderUpstreamError(ProviderError):
    """The provider answered with a non-success status."""

    def __init__(self, provider: str, status_code: int, body: str = ""):
        super().__init__(provider, f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


class ProviderNetworkError(ProviderError):
    """The request never got a response (connect error, timeout, ...)."""
