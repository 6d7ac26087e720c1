"""
tenant_gate.api.routers.auth

Identity endpoints (tenant-exempt under `/v1/auth`).

Responsibilities:
- Return the caller's resolved principal (required auth) and record the login
  (local user row with issuer object id and last login time).
- Report the session state for public pages (optional auth).
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_gate.api.deps import db_session, require_access
from tenant_gate.auth.gate import RequestContext
from tenant_gate.auth.models import Principal
from tenant_gate.db.models import User
from tenant_gate.db.repositories.users import UserRepo

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class PrincipalResponse(BaseModel):
    id: str
    email: str
    display_name: str
    global_role: str

    @classmethod
    def from_principal(cls, principal: Principal) -> PrincipalResponse:
        return cls(
            id=principal.id,
            email=principal.email,
            display_name=principal.display_name,
            global_role=principal.global_role.value,
        )


class MeResponse(PrincipalResponse):
    last_login_at: datetime | None = None


class SessionResponse(BaseModel):
    authenticated: bool
    user: PrincipalResponse | None = None


async def _record_login(session: AsyncSession, principal: Principal) -> User:
    repo = UserRepo(session)
    fields = {
        "email": principal.email,
        "name": principal.display_name,
        "role": principal.global_role.value,
        "azure_oid": principal.issuer_subject_id,
    }
    try:
        user = await repo.record_login(**fields)
        await session.commit()
    except IntegrityError:
        # First logins racing on the same email; the retry finds the winner's row.
        await session.rollback()
        user = await repo.record_login(**fields)
        await session.commit()
    return user


@router.get("/me", response_model=MeResponse)
async def me(
    ctx: RequestContext = Depends(require_access()),
    session: AsyncSession = Depends(db_session),
) -> MeResponse:
    # Required auth never yields an empty principal.
    principal: Principal = ctx.principal  # type: ignore[assignment]
    base = PrincipalResponse.from_principal(principal)
    if not principal.email:
        return MeResponse(**base.model_dump())
    user = await _record_login(session, principal)
    return MeResponse(**base.model_dump(), last_login_at=user.last_login_at)


@router.get("/session", response_model=SessionResponse)
async def session_state(
    ctx: RequestContext = Depends(require_access(optional_auth=True)),
) -> SessionResponse:
    if ctx.principal is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, user=PrincipalResponse.from_principal(ctx.principal))
