"""
tenant_gate.db.stores

SQLAlchemy-backed collaborators for the auth pipeline.

Responsibilities:
- Implement `tenancy.resolver.TenantStore` and `auth.identity.UserStore`.
- Open one short session per lookup and map ORM rows to frozen domain values.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenant_gate.auth.models import GlobalRole, Principal
from tenant_gate.db import models
from tenant_gate.db.repositories.tenants import TenantRepo
from tenant_gate.db.repositories.users import UserRepo
from tenant_gate.errors import TenantIdentifierConflict
from tenant_gate.observability.logging import get_logger
from tenant_gate.tenancy.models import Membership, Tenant, TenantRole

log = get_logger(__name__)


def tenant_from_row(row: models.Tenant) -> Tenant:
    return Tenant(
        id=row.id,
        slug=row.slug,
        name=row.name,
        is_active=row.is_active,
        subscription_status=row.subscription_status,
        subscription_plan=row.subscription_plan,
    )


def principal_from_user(row: models.User) -> Principal:
    return Principal(
        id=row.id,
        email=row.email,
        display_name=row.name,
        global_role=GlobalRole.parse(row.role) or GlobalRole.user,
        issuer_subject_id=row.azure_oid,
    )


class SqlTenantStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_tenant(self, identifier: str) -> Tenant | None:
        async with self._session_factory() as session:
            rows = await TenantRepo(session).match_identifier(identifier)
        if not rows:
            return None
        if len({r.id for r in rows}) > 1:
            # A slug equal to another tenant's id: a data-integrity error, not a choice.
            log.error("tenant_identifier_conflict", tenant_ids=sorted(r.id for r in rows))
            raise TenantIdentifierConflict()
        return tenant_from_row(rows[0])

    async def find_membership(self, *, tenant_id: str, user_id: str) -> Membership | None:
        async with self._session_factory() as session:
            row = await TenantRepo(session).get_membership(tenant_id=tenant_id, user_id=user_id)
        if row is None:
            return None
        try:
            role = TenantRole(row.role)
        except ValueError:
            log.warning("membership_role_unknown", tenant_id=tenant_id, role=row.role)
            return None
        return Membership(tenant_id=row.tenant_id, user_id=row.user_id, tenant_role=role)


class SqlUserStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_by_emails(self, emails: tuple[str, ...]) -> Principal | None:
        async with self._session_factory() as session:
            row = await UserRepo(session).first_by_emails(emails)
        return principal_from_user(row) if row is not None else None

    async def create(self, *, email: str, display_name: str, role: GlobalRole) -> Principal:
        async with self._session_factory() as session:
            repo = UserRepo(session)
            try:
                row = await repo.create(email=email, name=display_name, role=role.value)
                await session.commit()
            except IntegrityError:
                # A concurrent request created the same user first.
                await session.rollback()
                row = await repo.first_by_emails((email,))
                if row is None:
                    raise
                log.info("user_create_raced", email=email)
        return principal_from_user(row)


# --- Module Notes -----------------------------------------------------------
# Errors from the database propagate unchanged; `tenancy.resolver` and `auth.gate`
# turn them into an internal-error outcome rather than a denial.
