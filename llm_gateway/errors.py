"""Error types raised by provider adapters and the gateway."""
from __future__ import annotations

from typing import Optional


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


class ProviderError(LlmGatewayError):
    """A provider call failed.

    ``attempts`` is filled in by the retry policy with the number of calls
    that were made before giving up.
    """

    code = "PROVIDER_FAILURE"

    def __init__(self, provider: str, cause: str, *, attempts: int = 1) -> None:
        super().__init__(f"{provider} request failed: {cause}")
        self.provider = provider
        self.cause = cause
        self.attempts = attempts


class ProviderNotConfiguredError(ProviderError):
    """Provider has no credentials or endpoint; retrying cannot help."""

    code = "PROVIDER_NOT_CONFIGURED"

    def __init__(self, provider: str, detail: Optional[str] = None) -> None:
        super().__init__(provider, detail or "provider is not configured", attempts=0)


__all__ = ["LlmGatewayError", "ProviderError", "ProviderNotConfiguredError"]
