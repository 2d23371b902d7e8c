from __future__ import annotations  # Re-export company_research public API

from .service import (
    CompanyFetcher,
    CompanyProfile,
    CompanyResearchService,
    LlmCompanyFetcher,
    bare_profile,
    render,
)

__all__ = [
    "CompanyFetcher",
    "CompanyProfile",
    "CompanyResearchService",
    "LlmCompanyFetcher",
    "bare_profile",
    "render",
]
