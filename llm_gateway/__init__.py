from __future__ import annotations  # Re-export llm_gateway public API

from .adapters import GoogleAdapter, OllamaAdapter, OpenAIAdapter, ProviderAdapter, build_adapters
from .errors import LlmGatewayError, ProviderError, ProviderNotConfiguredError
from .gateway import LlmGateway, strip_code_fences
from .messages import ChatTurn
from .retry import RetryPolicy

__all__ = [
    "ChatTurn",
    "GoogleAdapter",
    "LlmGateway",
    "LlmGatewayError",
    "OllamaAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderError",
    "ProviderNotConfiguredError",
    "RetryPolicy",
    "build_adapters",
    "strip_code_fences",
]
