"""Configuration package for the interview orchestrator."""
from .providers import (
    GenerationParams,
    Provider,
    ProviderCatalog,
    ProviderProfile,
    load_provider_catalog,
)
from .settings import Settings, settings

__all__ = [
    "GenerationParams",
    "Provider",
    "ProviderCatalog",
    "ProviderProfile",
    "Settings",
    "load_provider_catalog",
    "settings",
]
