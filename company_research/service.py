from __future__ import annotations  # Company context lookup: cache, then fetcher, then bare name

import logging
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from config.providers import Provider
from llm_gateway import LlmGateway, strip_code_fences
from prompt_builder import Phase, build_prompt
from storage.cache import SafeCache, company_key

logger = logging.getLogger(__name__)


class CompanyProfile(BaseModel):  # Summarised company context
    company_name: str
    company_summary: str
    key_focus_areas: List[str] = Field(default_factory=list)
    is_fallback: bool = False


CompanyFetcher = Callable[[str], Awaitable[CompanyProfile]]


def bare_profile(company_name: str) -> CompanyProfile:  # Used when research fails
    return CompanyProfile(
        company_name=company_name,
        company_summary=company_name,
        key_focus_areas=[company_name],
        is_fallback=True,
    )


def render(profile: CompanyProfile) -> str:  # Text stored as the session's company context
    if profile.is_fallback:
        return profile.company_name
    lines = [f"{profile.company_name}: {profile.company_summary.strip()}"]
    areas = [area.strip() for area in profile.key_focus_areas if area.strip()]
    if areas:
        lines.append("Key focus areas: " + ", ".join(areas))
    return "\n".join(lines)


class LlmCompanyFetcher:  # Summarise a company with the company-summary prompt
    def __init__(self, gateway: LlmGateway, provider: Provider, model: str) -> None:
        self._gateway = gateway
        self._provider = provider
        self._model = model

    async def __call__(self, company_name: str) -> CompanyProfile:
        bundle = build_prompt(Phase.COMPANY_SUMMARY, company_name=company_name)
        raw = await self._gateway.complete(
            self._provider,
            self._model,
            bundle.prompt,
            system=bundle.system,
            temperature=bundle.temperature,
            label="company_summary",
        )
        profile = CompanyProfile.model_validate_json(strip_code_fences(raw))
        if not profile.company_name.strip():
            profile = profile.model_copy(update={"company_name": company_name})
        return profile


class CompanyResearchService:
    """Cache-or-fetch company research that never blocks session creation.

    Successful lookups are cached under ``company:<lowercased name>``; the
    bare-name fallback is returned but not cached so a later lookup can try
    again.
    """

    def __init__(
        self,
        cache: SafeCache,
        fetcher: Optional[CompanyFetcher] = None,
        *,
        ttl_s: int = 86400,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._ttl_s = ttl_s

    async def lookup(self, company_name: str) -> CompanyProfile:
        name = company_name.strip()
        key = company_key(name)
        cached = await self._cache.get(key)
        if cached is not None:
            try:
                return CompanyProfile.model_validate_json(cached)
            except ValidationError:
                logger.warning("Discarding unreadable cached company=%s", name)
        if self._fetcher is None:
            return bare_profile(name)
        try:
            profile = await self._fetcher(name)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Company research failed company=%s error=%s", name, exc)
            return bare_profile(name)
        await self._cache.set(key, profile.model_dump_json(), self._ttl_s)
        return profile


__all__ = [
    "CompanyFetcher",
    "CompanyProfile",
    "CompanyResearchService",
    "LlmCompanyFetcher",
    "bare_profile",
    "render",
]
