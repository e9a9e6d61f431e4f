"""Error taxonomy shared by the provider adapters and the provider manager."""

from __future__ import annotations

from typing import Optional


class ProviderError(RuntimeError):
    """Base class for failures raised by provider adapters and the manager."""


class MissingCredentialError(ProviderError):
    """Raised before any network call when an API key or endpoint is missing."""

    def __init__(self, provider: str, what: str = "API key") -> None:
        super().__init__(f"{provider} {what} is required")
        self.provider = provider
        self.what = what


class InvalidConversationShapeError(ProviderError):
    """Raised when a conversation does not end with a user turn."""


class RemoteAPIError(ProviderError):
    """Raised when a provider call fails.

    ``status`` is None when the failure happened at the transport level
    (connection refused, DNS failure, timeout).
    """

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        if status is not None:
            detail = f"{provider} API error ({status}): {body or message}"
        else:
            detail = f"Failed to communicate with {provider}: {message}"
        super().__init__(detail)
        self.provider = provider
        self.status = status
        self.body = body


class ConnectionTimeoutError(RemoteAPIError):
    """Raised when a provider call is aborted by its timeout."""

    def __init__(self, provider: str, message: str = "request timed out") -> None:
        super().__init__(provider, message)


class ProviderConfigurationError(ProviderError):
    """Raised when the manager cannot map a provider identity to an adapter."""
