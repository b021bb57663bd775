"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan builds the shared Authenticator at startup:

  settings ──► SQLCredentialStore(async_session_factory)
           ──► RemoteIdentityClient (only if a provider URL is set)
           ──► PATUsageRecorder (workers started here)
           ──► Authenticator(store, settings.jwt_secret, ...) → app.state

and tears the background pieces down again at shutdown.
"""

from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from tenantauth import __version__
from tenantauth.api import api_router
from tenantauth.auth.authenticator import Authenticator
from tenantauth.auth.remote import RemoteIdentityClient
from tenantauth.auth.usage import PATUsageRecorder
from tenantauth.config import Settings, settings
from tenantauth.store.base import CredentialStore

logger = structlog.get_logger()


def build_authenticator(
    config: Settings,
    store: CredentialStore,
    *,
    http_client: httpx.AsyncClient | None = None,
    usage_recorder: PATUsageRecorder | None = None,
) -> Authenticator:
    """Wire an Authenticator from settings. The secret is passed explicitly."""
    remote_client = None
    if config.remote_identity_url:
        remote_client = RemoteIdentityClient(
            config.remote_identity_url,
            timeout=config.remote_identity_timeout_seconds,
            client=http_client,
        )

    return Authenticator(
        store,
        config.jwt_secret,
        remote_client=remote_client,
        usage_recorder=usage_recorder,
        pat_prefix=config.pat_prefix,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    from tenantauth.db.engine import async_session_factory, engine
    from tenantauth.store.sql import SQLCredentialStore

    logger.info(
        "tenantauth.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        remote_identity=bool(settings.remote_identity_url),
    )

    store = SQLCredentialStore(async_session_factory)
    recorder = PATUsageRecorder(
        store,
        max_pending=settings.pat_usage_queue_size,
        workers=settings.pat_usage_workers,
    )
    await recorder.start()

    http_client = httpx.AsyncClient(
        timeout=settings.remote_identity_timeout_seconds,
        follow_redirects=False,
    )
    app.state.authenticator = build_authenticator(
        settings, store, http_client=http_client, usage_recorder=recorder
    )

    yield

    # Shutdown
    logger.info("tenantauth.shutdown")
    await recorder.stop()
    await http_client.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="tenantauth",
        description="Request authentication for a multi-tenant API server",
        version=__version__,
        lifespan=lifespan,
    )

    from tenantauth.middleware.request_context import RequestContextMiddleware

    app.add_middleware(RequestContextMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: tenantauth.main:app)
app = create_app()
