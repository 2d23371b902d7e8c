"""Process-wide service wiring, constructed once at startup."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import httpx

from company_research import CompanyResearchService, LlmCompanyFetcher
from config.providers import Provider, ProviderCatalog, load_provider_catalog
from config.settings import Settings
from interview_session.state_machine import InterviewStateMachine
from llm_gateway import LlmGateway, ProviderAdapter, RetryPolicy, build_adapters
from storage.cache import SafeCache, build_cache
from storage.error_logs import ErrorLog
from storage.migrate import migrate
from storage.reports import ReportRepository
from storage.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class Services:  # Explicit dependencies handed to the API layer
    settings: Settings
    catalog: ProviderCatalog
    cache: SafeCache
    gateway: LlmGateway
    store: SessionStore
    reports: ReportRepository
    error_log: ErrorLog
    research: CompanyResearchService
    machine: InterviewStateMachine
    http_client: Optional[httpx.AsyncClient] = None

    async def aclose(self) -> None:  # Drain report tasks, then release clients
        await self.machine.wait_for_reports()
        await self.cache.aclose()
        if self.http_client is not None:
            await self.http_client.aclose()


async def build_services(
    settings: Settings,
    *,
    adapters: Optional[Mapping[Provider, ProviderAdapter]] = None,
    retry: Optional[RetryPolicy] = None,
    cache: Optional[SafeCache] = None,
    catalog: Optional[ProviderCatalog] = None,
) -> Services:
    """Create every service for ``settings``.

    Tests pass ``adapters`` and ``retry`` to replace the HTTP providers and
    the backoff delays; production code passes only settings.
    """

    migrate(settings.DB_PATH)
    catalog = catalog or load_provider_catalog(
        Path(settings.PROVIDER_CATALOG_PATH) if settings.PROVIDER_CATALOG_PATH else None
    )
    http_client: Optional[httpx.AsyncClient] = None
    if adapters is None:
        http_client = httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_S)
        adapters = build_adapters(settings, catalog, http_client)
    retry = retry or RetryPolicy(
        settings.RETRY_ATTEMPTS,
        base=settings.RETRY_BACKOFF_BASE,
        unit_s=settings.RETRY_DELAY_UNIT_S,
    )
    gateway = LlmGateway(adapters, retry, catalog)
    cache = cache or await build_cache(settings.REDIS_URL)
    store = SessionStore(settings.DB_PATH, cache, ttl_s=settings.SESSION_CACHE_TTL_S)
    reports = ReportRepository(settings.DB_PATH)
    error_log = ErrorLog(settings.DB_PATH)
    default_provider = Provider(settings.DEFAULT_PROVIDER.upper())
    research = CompanyResearchService(
        cache,
        LlmCompanyFetcher(gateway, default_provider, catalog.profile(default_provider).default_model),
        ttl_s=settings.COMPANY_CACHE_TTL_S,
    )
    machine = InterviewStateMachine(
        store=store,
        reports=reports,
        error_log=error_log,
        gateway=gateway,
        catalog=catalog,
        settings=settings,
        research=research,
    )
    logger.info("Services ready db=%s cache=%s", settings.DB_PATH, type(cache.backend).__name__)
    return Services(
        settings=settings,
        catalog=catalog,
        cache=cache,
        gateway=gateway,
        store=store,
        reports=reports,
        error_log=error_log,
        research=research,
        machine=machine,
        http_client=http_client,
    )


__all__ = ["Services", "build_services"]
