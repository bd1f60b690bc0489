"""Typed exception hierarchy for exchange and market-data errors.

Callers distinguish bad credentials from transient network failures and
from payloads that cannot be parsed.  Reconciliation treats any
``ProviderError`` raised while fetching a snapshot as fatal.
"""


class ProviderError(Exception):
    """Base exception for errors raised by an external data source.

    Carries the provider name so callers can identify which source failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """API key missing, rejected, or lacking permissions (HTTP 401/403)."""

    pass


class ProviderConnectionError(ProviderError):
    """Network failures: timeouts, DNS resolution, connection refused.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the provider API.

    ``error_code`` holds the exchange's own error code when the body
    carries one (Binance returns ``{"code": -1121, "msg": "..."}``).
    """

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
        error_code: int | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429/418 (rate limit, IP ban) and 5xx errors are retriable."""
        if self.status_code is None:
            return False
        return self.status_code in (418, 429) or self.status_code >= 500


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the provider."""

    pass
