"""Provider catalog: default models, allowed models and generation parameters."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "providers.yaml"


class Provider(str, Enum):
    """Closed set of supported LLM backends."""

    GOOGLE = "GOOGLE"
    OPENAI = "OPENAI"
    OLLAMA = "OLLAMA"


class GenerationParams(BaseModel):  # Vendor-specific sampling settings
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=0.9, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, ge=1)
    max_output_tokens: Optional[int] = Field(default=2048, ge=1)
    repeat_penalty: Optional[float] = None


class ProviderProfile(BaseModel):  # Catalog entry for one provider
    default_model: str
    models: List[str]
    params: GenerationParams = Field(default_factory=GenerationParams)

    def allows(self, model: str) -> bool:
        return model in self.models


class ProviderCatalog(BaseModel):  # Catalog root keyed by provider
    providers: Dict[Provider, ProviderProfile]

    def profile(self, provider: Provider) -> ProviderProfile:
        try:
            return self.providers[provider]
        except KeyError as exc:
            raise KeyError(f"Provider '{provider.value}' missing from catalog") from exc

    def resolve_model(self, provider: Provider, model: Optional[str]) -> Optional[str]:
        """Return the model to use, or None when ``model`` is not allowed."""

        profile = self.profile(provider)
        if not model:
            return profile.default_model
        return model if profile.allows(model) else None


BUILTIN_CATALOG: Dict[str, dict] = {
    "GOOGLE": {
        "default_model": "gemini-2.5-flash",
        "models": ["gemini-2.5-flash", "gemini-1.5-flash", "gemini-pro"],
        "params": {"temperature": 0.7, "top_p": 0.9, "top_k": 40, "max_output_tokens": 2048},
    },
    "OPENAI": {
        "default_model": "gpt-4o",
        "models": ["gpt-4o", "gpt-4-turbo", "gpt-3.5-turbo"],
        "params": {"temperature": 0.7, "top_p": 0.9, "max_output_tokens": 2048},
    },
    "OLLAMA": {
        "default_model": "llama3.1:8b",
        "models": ["llama3.1:8b", "llama3.1:70b", "mistral:7b"],
        "params": {"temperature": 0.7, "top_p": 0.9, "repeat_penalty": 1.1, "max_output_tokens": None},
    },
}


def load_provider_catalog(path: Optional[Path] = None) -> ProviderCatalog:  # Load catalog from YAML with built-in fallback
    target = path or DEFAULT_CATALOG_PATH
    if not target.exists():
        return ProviderCatalog.model_validate({"providers": BUILTIN_CATALOG})
    with open(target, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    merged = dict(BUILTIN_CATALOG)
    merged.update(raw.get("providers", {}))
    return ProviderCatalog.model_validate({"providers": merged})


__all__ = [
    "BUILTIN_CATALOG",
    "GenerationParams",
    "Provider",
    "ProviderCatalog",
    "ProviderProfile",
    "load_provider_catalog",
]
