"""
FastAPI application factory.
create_app() is the single entry point for building the app.

The lifespan owns every stateful collaborator: the Mongo client, the optional
Redis client, the pending code store and the email provider. They are created
at startup, exposed through app.state, and torn down at shutdown.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.code_store import (
    InMemoryCodeStore,
    PendingCodeStore,
    RedisCodeStore,
)
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.zeptomail import ZeptoMailProvider
from repositories.recovery_code_repository import RecoveryCodeRepository
from routes.health_routes import router as health_router
from routes.mfa_routes import router as mfa_router
from services.mfa_code_service import MfaCodeService
from services.recovery_code_service import RecoveryCodeService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_code_store(settings: AppSettings, redis_client) -> PendingCodeStore:
    """Pick the shared Redis store when Redis is reachable, else process memory."""
    mfa = settings.mfa
    if redis_client is not None:
        return RedisCodeStore(
            redis_client,
            ttl_seconds=mfa.mfa_code_ttl_seconds,
            max_failed_attempts=mfa.mfa_max_failed_attempts,
        )
    if settings.is_production:
        # Multiple workers would each hold their own codes
        log.warning("code_store_process_local")
    return InMemoryCodeStore(
        ttl_seconds=mfa.mfa_code_ttl_seconds,
        max_failed_attempts=mfa.mfa_max_failed_attempts,
    )


async def purge_expired_codes(store: PendingCodeStore, interval_seconds: float) -> None:
    """Sweep expired pending codes every *interval_seconds* until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        purged = await store.purge_expired()
        if purged:
            log.debug("pending_codes_purged", count=purged)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        # Redis is optional; without it pending codes live in this process only
        redis_client = await create_redis_client(settings.redis.redis_uri)
        app.state.redis = redis_client

        code_store = build_code_store(settings, redis_client)
        app.state.code_store = code_store
        purge_task = None
        if isinstance(code_store, InMemoryCodeStore):
            # Redis expires its own entries via PX
            purge_task = asyncio.create_task(
                purge_expired_codes(code_store, settings.mfa.mfa_purge_interval_seconds)
            )
        app.state.mfa_code_service = MfaCodeService(code_store, settings.mfa)

        recovery_repo = RecoveryCodeRepository(app.state.db)
        await recovery_repo.ensure_indexes()
        app.state.recovery_code_service = RecoveryCodeService(
            recovery_repo, settings.mfa
        )

        email_provider = None
        if settings.email.zepto_api_token:
            email_provider = ZeptoMailProvider(
                settings.email, app_name=settings.app_name
            )
        app.state.email_provider = email_provider

        log.info(
            "app_started",
            code_store=type(code_store).__name__,
            email_delivery=email_provider is not None,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        if purge_task is not None:
            purge_task.cancel()
            with suppress(asyncio.CancelledError):
                await purge_task
        await code_store.aclose()
        if email_provider is not None:
            await email_provider.aclose()
        if redis_client is not None:
            await redis_client.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # all origins allowed with credentials support.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(mfa_router)

    return app
