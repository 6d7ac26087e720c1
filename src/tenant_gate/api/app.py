"""
tenant_gate.api.app

FastAPI app factory for the tenant gate service.

Responsibilities:
- Refuse to build the app with a weak master key or an unsafe auth mode.
- Initialize and dispose shared infrastructure (DB engine, JWKS client, gate).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from tenant_gate.api.routers.admin import router as admin_router
from tenant_gate.api.routers.auth import router as auth_router
from tenant_gate.api.routers.health import router as health_router
from tenant_gate.api.routers.tenants import router as tenants_router
from tenant_gate.api.routers.vault import router as vault_router
from tenant_gate.auth.gate import AuthorizationGate
from tenant_gate.auth.identity import IdentityResolver
from tenant_gate.auth.jwks import SigningKeyCache
from tenant_gate.auth.jwt import JwtConfig, TokenVerifier
from tenant_gate.auth.models import AuthMode
from tenant_gate.crypto.cipher import SecretCipher
from tenant_gate.db.init_db import init_db
from tenant_gate.db.session import create_engine, create_sessionmaker
from tenant_gate.db.stores import SqlTenantStore, SqlUserStore
from tenant_gate.observability.logging import configure_logging, get_logger
from tenant_gate.observability.middleware import RequestContextMiddleware
from tenant_gate.settings import Settings
from tenant_gate.tenancy.resolver import TenantResolver

log = get_logger(__name__)


def create_app(*, settings: Settings, jwks_http: httpx.AsyncClient | None = None) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    # Startup-fatal checks run before the app object exists.
    mode = AuthMode.from_settings(settings)
    cipher = SecretCipher.from_settings(settings)
    jwt_cfg = JwtConfig.from_settings(settings) if mode is AuthMode.production else None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env, auth_mode=mode.value)
        if mode is AuthMode.development:
            log.warning("dev_auth_enabled")

        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod uses Alembic.
            await init_db(engine)

        keys: SigningKeyCache | None = None
        verifier: TokenVerifier | None = None
        if jwt_cfg is not None:
            keys = SigningKeyCache.from_settings(settings, http=jwks_http)
            verifier = TokenVerifier(cfg=jwt_cfg, keys=keys)

        identities = IdentityResolver.from_settings(
            settings,
            mode=mode,
            users=SqlUserStore(sessionmaker) if mode is AuthMode.development else None,
        )
        tenants = TenantResolver(
            store=SqlTenantStore(sessionmaker),
            mode=mode,
            exempt_paths=settings.tenant_exempt_paths,
        )
        app.state.gate = AuthorizationGate(
            mode=mode, verifier=verifier, identities=identities, tenants=tenants
        )
        try:
            yield
        finally:
            if keys is not None:
                await keys.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Tenant Gate",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(tenants_router)
    app.include_router(admin_router)
    app.include_router(vault_router)

    app.state.cipher = cipher

    return app


# --- Module Notes -----------------------------------------------------------
# `WeakMasterKey` and `ConfigurationError` propagate out of `create_app`, so a
# misconfigured process never binds a port.
