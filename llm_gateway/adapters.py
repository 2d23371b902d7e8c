from __future__ import annotations  # Vendor adapters behind a uniform generate() contract

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from config.providers import GenerationParams, Provider, ProviderCatalog
from config.settings import Settings
from .errors import ProviderError, ProviderNotConfiguredError
from .messages import ChatTurn, non_empty


logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a professional interviewer conducting a technical interview."

Request = Tuple[str, Dict[str, Any], Dict[str, str]]


class ProviderAdapter(ABC):
    """Generate text from one vendor given a prompt and prior turns.

    Subclasses only decide how the request is framed and how the reply text
    is pulled out of the response body.
    """

    provider: Provider

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        params: GenerationParams,
        timeout_s: float = 60.0,
    ) -> None:
        self._client = client
        self._params = params
        self._timeout_s = timeout_s

    @property
    @abstractmethod
    def configured(self) -> bool: ...

    @abstractmethod
    def _build_request(
        self,
        model: str,
        prompt: str,
        turns: Sequence[ChatTurn],
        system: Optional[str],
        temperature: float,
    ) -> Request: ...

    @abstractmethod
    def _extract_text(self, data: Any) -> Optional[str]: ...

    async def generate(
        self,
        model: str,
        prompt: str,
        prior_turns: Sequence[ChatTurn] = (),
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        name = self.provider.value
        if not self.configured:
            raise ProviderNotConfiguredError(name)
        effective_temperature = self._params.temperature if temperature is None else temperature
        url, payload, headers = self._build_request(
            model, prompt, non_empty(prior_turns), system, effective_temperature
        )
        try:
            response = await self._client.post(url, json=payload, headers=headers, timeout=self._timeout_s)
        except httpx.HTTPError as exc:
            logger.error("%s transport failure: %s", name, exc)
            raise ProviderError(name, f"transport error: {exc.__class__.__name__}") from exc
        if response.status_code >= 400:
            logger.error("%s error status: %s", name, response.status_code)
            raise ProviderError(name, f"status {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(name, "payload was not JSON") from exc
        text = self._extract_text(data)
        if not text or not text.strip():
            raise ProviderError(name, "response missing content")
        return text.strip()


class GoogleAdapter(ProviderAdapter):  # Gemini generateContent over REST
    provider = Provider.GOOGLE

    def __init__(self, *, api_key: Optional[str], base_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _build_request(self, model, prompt, turns, system, temperature) -> Request:
        contents: List[Dict[str, Any]] = [
            {"role": "user" if turn.role == "user" else "model", "parts": [{"text": turn.content}]}
            for turn in turns
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        generation: Dict[str, Any] = {"temperature": temperature}
        if self._params.top_p is not None:
            generation["topP"] = self._params.top_p
        if self._params.top_k is not None:
            generation["topK"] = self._params.top_k
        if self._params.max_output_tokens is not None:
            generation["maxOutputTokens"] = self._params.max_output_tokens
        payload: Dict[str, Any] = {"contents": contents, "generationConfig": generation}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        url = f"{self._base_url}/v1beta/models/{model}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key or ""}
        return url, payload, headers

    def _extract_text(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return None
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class OpenAIAdapter(ProviderAdapter):  # OpenAI-compatible chat completions
    provider = Provider.OPENAI

    def __init__(self, *, api_key: Optional[str], base_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _build_request(self, model, prompt, turns, system, temperature) -> Request:
        messages: List[Dict[str, str]] = [{"role": "system", "content": system or DEFAULT_SYSTEM_PROMPT}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in turns)
        messages.append({"role": "user", "content": prompt})
        payload: Dict[str, Any] = {"model": model, "messages": messages, "temperature": temperature}
        if self._params.top_p is not None:
            payload["top_p"] = self._params.top_p
        if self._params.max_output_tokens is not None:
            payload["max_tokens"] = self._params.max_output_tokens
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self._api_key}"}
        return f"{self._base_url}/chat/completions", payload, headers

    def _extract_text(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        return None


class OllamaAdapter(ProviderAdapter):  # Local Ollama /api/chat
    provider = Provider.OLLAMA

    def __init__(self, *, base_url: Optional[str], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._base_url = (base_url or "").rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    def _build_request(self, model, prompt, turns, system, temperature) -> Request:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend({"role": turn.role, "content": turn.content} for turn in turns)
        messages.append({"role": "user", "content": prompt})
        options: Dict[str, Any] = {"temperature": temperature}
        if self._params.top_p is not None:
            options["top_p"] = self._params.top_p
        if self._params.repeat_penalty is not None:
            options["repeat_penalty"] = self._params.repeat_penalty
        if self._params.max_output_tokens is not None:
            options["num_predict"] = self._params.max_output_tokens
        payload = {"model": model, "messages": messages, "stream": False, "options": options}
        return f"{self._base_url}/api/chat", payload, {"Content-Type": "application/json"}

    def _extract_text(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        message = data.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return content if isinstance(content, str) else None


def build_adapters(
    settings: Settings,
    catalog: ProviderCatalog,
    client: httpx.AsyncClient,
) -> Dict[Provider, ProviderAdapter]:  # Construct one adapter per provider
    common = {"client": client, "timeout_s": settings.PROVIDER_TIMEOUT_S}
    return {
        Provider.GOOGLE: GoogleAdapter(
            api_key=settings.GOOGLE_API_KEY,
            base_url=settings.GOOGLE_BASE_URL,
            params=catalog.profile(Provider.GOOGLE).params,
            **common,
        ),
        Provider.OPENAI: OpenAIAdapter(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            params=catalog.profile(Provider.OPENAI).params,
            **common,
        ),
        Provider.OLLAMA: OllamaAdapter(
            base_url=settings.OLLAMA_BASE_URL,
            params=catalog.profile(Provider.OLLAMA).params,
            **common,
        ),
    }


__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "GoogleAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "build_adapters",
]
