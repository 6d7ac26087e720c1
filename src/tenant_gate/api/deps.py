"""
tenant_gate.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for DB sessions, the gate and the cipher.
- Turn `AuthorizationGate` outcomes into a `RequestContext` or an HTTP error.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable

import structlog
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenant_gate.auth.gate import AccessRequest, Allowed, AuthorizationGate, RequestContext
from tenant_gate.auth.models import GlobalRole
from tenant_gate.crypto.cipher import SecretCipher
from tenant_gate.tenancy.models import TenantRole


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created on app startup in `tenant_gate.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Handlers commit explicitly.
    async with session_factory() as session:
        yield session


def gate_dep(request: Request) -> AuthorizationGate:
    return request.app.state.gate  # type: ignore[attr-defined]


def cipher_dep(request: Request) -> SecretCipher:
    return request.app.state.cipher  # type: ignore[attr-defined]


def require_access(
    *,
    global_roles: Iterable[GlobalRole] | None = None,
    tenant_roles: Iterable[TenantRole] | None = None,
    optional_auth: bool = False,
    tenant_required: bool = True,
):
    global_set = frozenset(global_roles) if global_roles is not None else None
    tenant_set = frozenset(tenant_roles) if tenant_roles is not None else None

    async def _dep(
        request: Request, gate: AuthorizationGate = Depends(gate_dep)
    ) -> RequestContext:
        outcome = await gate.authorize(
            AccessRequest.from_http(request),
            global_roles=global_set,
            tenant_roles=tenant_set,
            optional_auth=optional_auth,
            tenant_required=tenant_required,
        )
        if not isinstance(outcome, Allowed):
            raise HTTPException(
                status_code=outcome.http_status,
                detail={"reason": outcome.reason.value, "message": outcome.detail},
            )

        ctx = outcome.context
        structlog.contextvars.bind_contextvars(
            principal_id=ctx.principal.id if ctx.principal else None,
            tenant_id=ctx.tenant.id if ctx.tenant else None,
        )
        return ctx

    return _dep


# --- Module Notes -----------------------------------------------------------
# Handlers receive the context only through `require_access`; nothing is attached to
# the request object, so a handler cannot read identity before the gate has run.
