from __future__ import annotations  # FastAPI server exposing the interview session API

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router
from config.providers import Provider
from config.settings import Settings, settings as default_settings
from interview_session.errors import InterviewError
from llm_gateway import ProviderAdapter, RetryPolicy
from services.container import build_services
from storage.cache import SafeCache


logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    adapters: Optional[Mapping[Provider, ProviderAdapter]] = None,
    retry: Optional[RetryPolicy] = None,
    cache: Optional[SafeCache] = None,
) -> FastAPI:  # Build the app; services live for the duration of the lifespan
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services = await build_services(cfg, adapters=adapters, retry=retry, cache=cache)
        app.state.services = services
        try:
            yield
        finally:
            await services.aclose()
            logger.info("Services closed")

    app = FastAPI(title="Interview Session API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InterviewError)
    async def interview_error(request: Request, exc: InterviewError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed path=%s code=%s message=%s", request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "VALIDATION_FAILED", "message": details})

    app.include_router(router)
    return app


app = create_app()
