from __future__ import annotations  # LLM request gateway over the provider adapters

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from config.providers import Provider, ProviderCatalog
from .adapters import ProviderAdapter
from .errors import ProviderNotConfiguredError
from .messages import ChatTurn, preview
from .retry import RetryPolicy


logger = logging.getLogger(__name__)  # Module logger setup


class LlmGateway:
    """Single entry point for text generation.

    Picks the adapter for a provider and runs the call through the retry
    policy. Provider-specific framing stays inside the adapters.
    """

    def __init__(
        self,
        adapters: Mapping[Provider, ProviderAdapter],
        retry: RetryPolicy,
        catalog: Optional[ProviderCatalog] = None,
    ) -> None:
        self._adapters: Dict[Provider, ProviderAdapter] = dict(adapters)
        self._retry = retry
        self._catalog = catalog

    @property
    def retry(self) -> RetryPolicy:
        return self._retry

    def adapter(self, provider: Provider) -> ProviderAdapter:  # Look up adapter for a provider
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise ProviderNotConfiguredError(provider.value, "no adapter registered")
        return adapter

    async def complete(
        self,
        provider: Provider,
        model: str,
        prompt: str,
        *,
        history: Sequence[ChatTurn] = (),
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        label: str = "generate",
    ) -> str:  # Generate text with retry and request logging
        adapter = self.adapter(provider)
        text_preview = preview(prompt)
        logger.info(
            "LLM request start route=%s provider=%s model=%s attempts=%d preview=%s",
            label,
            provider.value,
            model,
            self._retry.attempts,
            text_preview,
        )
        attempt = 0

        async def _send() -> str:
            nonlocal attempt
            attempt += 1
            logger.info(
                "LLM request send route=%s provider=%s model=%s attempt=%d/%d",
                label,
                provider.value,
                model,
                attempt,
                self._retry.attempts,
            )
            return await adapter.generate(model, prompt, history, system=system, temperature=temperature)

        text = await self._retry.run(_send, label=label)
        logger.info(
            "LLM request done route=%s provider=%s model=%s attempt=%d",
            label,
            provider.value,
            model,
            attempt,
        )
        return text

    def describe_providers(self) -> List[Dict[str, object]]:  # Provider availability and model lists
        rows: List[Dict[str, object]] = []
        for provider in Provider:
            adapter = self._adapters.get(provider)
            row: Dict[str, object] = {
                "provider": provider.value,
                "configured": bool(adapter is not None and adapter.configured),
                "models": [],
                "default_model": None,
            }
            if self._catalog is not None:
                profile = self._catalog.profile(provider)
                row["models"] = list(profile.models)
                row["default_model"] = profile.default_model
            rows.append(row)
        return rows


def strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()[1:]
        while lines and lines[0].strip() == "":
            lines = lines[1:]
        while lines and lines[-1].strip() == "":
            lines = lines[:-1]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


__all__ = ["LlmGateway", "strip_code_fences"]
