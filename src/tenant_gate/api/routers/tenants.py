"""
tenant_gate.api.routers.tenants

Tenant endpoints: the caller's tenants and the tenant resolved from the request.

Responsibilities:
- List the caller's tenants and create new ones (creator becomes OWNER).
- Describe the current tenant and the caller's membership.
- Rename the current tenant (tenant OWNER/ADMIN).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
)

from tenant_gate.api.deps import db_session, require_access
from tenant_gate.auth.gate import RequestContext
from tenant_gate.db.repositories.tenants import TenantRepo
from tenant_gate.db.stores import tenant_from_row
from tenant_gate.observability.logging import get_logger
from tenant_gate.tenancy.models import Tenant, TenantRole

log = get_logger(__name__)

router = APIRouter(prefix="/v1/tenants", tags=["tenants"])


class TenantResponse(BaseModel):
    id: str
    slug: str
    name: str
    subscription_status: str
    subscription_plan: str | None = None
    membership_role: str | None = None

    @classmethod
    def build(cls, tenant: Tenant, *, membership_role: str | None) -> TenantResponse:
        return cls(
            id=tenant.id,
            slug=tenant.slug,
            name=tenant.name,
            subscription_status=tenant.subscription_status,
            subscription_plan=tenant.subscription_plan,
            membership_role=membership_role,
        )


class TenantRenameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=256)


class TenantCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    slug: str = Field(min_length=1, max_length=64, pattern=r"^[a-z0-9-]+$")


@router.get("", response_model=list[TenantResponse])
async def list_my_tenants(
    ctx: RequestContext = Depends(require_access(tenant_required=False)),
    session: AsyncSession = Depends(db_session),
) -> list[TenantResponse]:
    rows = await TenantRepo(session).list_for_user(ctx.principal.id)  # type: ignore[union-attr]
    return [
        TenantResponse.build(tenant_from_row(tenant), membership_role=member.role)
        for member, tenant in rows
    ]


@router.post("", response_model=TenantResponse, status_code=HTTP_201_CREATED)
async def create_tenant(
    body: TenantCreateRequest,
    ctx: RequestContext = Depends(require_access(tenant_required=False)),
    session: AsyncSession = Depends(db_session),
) -> TenantResponse:
    repo = TenantRepo(session)
    # Slugs must not collide with another tenant's slug or id.
    if await repo.match_identifier(body.slug):
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail="Tenant slug already exists")
    owner = TenantRole.owner.value
    try:
        row = await repo.create(slug=body.slug, name=body.name)
        await repo.add_member(
            tenant_id=row.id, user_id=ctx.principal.id, role=owner  # type: ignore[union-attr]
        )
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(
            status_code=HTTP_409_CONFLICT, detail="Tenant slug already exists"
        ) from None
    log.info("tenant_created", tenant_id=row.id, slug=row.slug)
    return TenantResponse.build(tenant_from_row(row), membership_role=owner)


@router.get("/current", response_model=TenantResponse)
async def current_tenant(ctx: RequestContext = Depends(require_access())) -> TenantResponse:
    if ctx.tenant is None:
        # Development mode lets tenant-less requests through; this endpoint needs one.
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Tenant context required")
    role = ctx.membership.tenant_role.value if ctx.membership else None
    return TenantResponse.build(ctx.tenant, membership_role=role)


@router.patch("/current", response_model=TenantResponse)
async def rename_current_tenant(
    body: TenantRenameRequest,
    ctx: RequestContext = Depends(
        require_access(tenant_roles={TenantRole.owner, TenantRole.admin})
    ),
    session: AsyncSession = Depends(db_session),
) -> TenantResponse:
    row = await TenantRepo(session).rename(ctx.tenant.id, name=body.name)  # type: ignore[union-attr]
    if row is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Tenant not found")
    await session.commit()
    return TenantResponse(
        id=row.id,
        slug=row.slug,
        name=row.name,
        subscription_status=row.subscription_status,
        subscription_plan=row.subscription_plan,
        membership_role=ctx.membership.tenant_role.value,  # type: ignore[union-attr]
    )
