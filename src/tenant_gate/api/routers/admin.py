"""
tenant_gate.api.routers.admin

Platform-administration endpoints (global ADMIN; no tenant context needed).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_gate.api.deps import db_session, require_access
from tenant_gate.auth.models import GlobalRole
from tenant_gate.db.repositories.tenants import TenantRepo

router = APIRouter(prefix="/v1/admin", tags=["admin"])


class TenantSummary(BaseModel):
    id: str
    slug: str
    name: str
    is_active: bool
    subscription_status: str


@router.get(
    "/tenants",
    response_model=list[TenantSummary],
    dependencies=[Depends(require_access(global_roles={GlobalRole.admin}, tenant_required=False))],
)
async def list_tenants(session: AsyncSession = Depends(db_session)) -> list[TenantSummary]:
    rows = await TenantRepo(session).list_all()
    return [
        TenantSummary(
            id=r.id,
            slug=r.slug,
            name=r.name,
            is_active=r.is_active,
            subscription_status=r.subscription_status,
        )
        for r in rows
    ]
