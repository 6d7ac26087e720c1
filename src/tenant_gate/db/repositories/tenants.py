"""
tenant_gate.db.repositories.tenants

Repository for `Tenant` and `TenantMember` entities.

Responsibilities:
- Look up tenants by id-or-slug, memberships by (tenant, user) and a user's tenants.
- Create/update tenants and grant memberships (admin surfaces, tests, dev seeding).
"""

from __future__ import annotations

from sqlalchemy import desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_gate.db.models import Tenant, TenantMember


class TenantRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def match_identifier(self, identifier: str) -> list[Tenant]:
        # Returns every row whose id or slug equals `identifier` (at most two when the
        # identifier spaces are disjoint, which the caller verifies).
        stmt = select(Tenant).where(or_(Tenant.id == identifier, Tenant.slug == identifier)).limit(2)
        return list((await self._session.execute(stmt)).scalars().all())

    async def get(self, tenant_id: str) -> Tenant | None:
        return await self._session.get(Tenant, tenant_id)

    async def list_for_user(self, user_id: str) -> list[tuple[TenantMember, Tenant]]:
        stmt = (
            select(TenantMember, Tenant)
            .join(Tenant, Tenant.id == TenantMember.tenant_id)
            .where(TenantMember.user_id == user_id)
            .order_by(desc(TenantMember.created_at))
        )
        return [(m, t) for m, t in (await self._session.execute(stmt)).all()]

    async def list_all(self, *, limit: int = 200) -> list[Tenant]:
        stmt = select(Tenant).order_by(Tenant.slug).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def create(
        self,
        *,
        slug: str,
        name: str,
        tenant_id: str | None = None,
        is_active: bool = True,
        subscription_status: str = "TRIAL",
        subscription_plan: str | None = None,
    ) -> Tenant:
        tenant = Tenant(
            slug=slug,
            name=name,
            is_active=is_active,
            subscription_status=subscription_status,
            subscription_plan=subscription_plan,
        )
        if tenant_id is not None:
            tenant.id = tenant_id
        self._session.add(tenant)
        await self._session.flush()
        return tenant

    async def rename(self, tenant_id: str, *, name: str) -> Tenant | None:
        tenant = await self._session.get(Tenant, tenant_id, with_for_update=True)
        if tenant is None:
            return None
        tenant.name = name
        return tenant

    async def get_membership(self, *, tenant_id: str, user_id: str) -> TenantMember | None:
        stmt = select(TenantMember).where(
            TenantMember.tenant_id == tenant_id, TenantMember.user_id == user_id
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def add_member(self, *, tenant_id: str, user_id: str, role: str) -> TenantMember:
        member = TenantMember(tenant_id=tenant_id, user_id=user_id, role=role)
        self._session.add(member)
        await self._session.flush()
        return member
