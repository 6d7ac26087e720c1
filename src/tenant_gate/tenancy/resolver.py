"""
tenant_gate.tenancy.resolver

Tenant resolution for an inbound request.

Responsibilities:
- Choose the tenant identifier from request signals (header > subdomain > query).
- Apply the no-signal policy (exempt paths, development relaxation, optional tenant).
- Load the tenant, enforce activation, and attach the caller's membership.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from tenant_gate.auth.models import AuthMode, Principal
from tenant_gate.errors import (
    NoTenant,
    TenantInactive,
    TenantNotFound,
    TenantStoreError,
)
from tenant_gate.observability.logging import get_logger
from tenant_gate.tenancy.models import Membership, Tenant, TenantContext
from tenant_gate.tenancy.signals import RequestSignals

log = get_logger(__name__)


class TenantStore(Protocol):
    async def find_tenant(self, identifier: str) -> Tenant | None:
        """Match `identifier` against tenant id or slug; raise `TenantIdentifierConflict`
        when it names two different tenants."""
        ...

    async def find_membership(self, *, tenant_id: str, user_id: str) -> Membership | None: ...


def is_exempt_path(path: str, exempt_paths: Sequence[str]) -> bool:
    for prefix in exempt_paths:
        prefix = prefix.rstrip("/") or "/"
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


class TenantResolver:
    def __init__(
        self,
        *,
        store: TenantStore,
        mode: AuthMode,
        exempt_paths: Sequence[str] = (),
    ) -> None:
        self._store = store
        self._mode = mode
        self._exempt_paths = tuple(exempt_paths)

    async def resolve(
        self,
        signals: RequestSignals,
        principal: Principal | None,
        *,
        path: str = "/",
        required: bool = True,
    ) -> TenantContext | None:
        picked = signals.pick()
        if picked is None:
            if is_exempt_path(path, self._exempt_paths):
                return None
            if self._mode is AuthMode.development and principal is not None:
                log.info("dev_mode_no_tenant", path=path)
                return None
            if not required:
                return None
            raise NoTenant()

        source, identifier = picked
        tenant = await self._call_store(self._store.find_tenant(identifier))
        if tenant is None:
            log.info("tenant_not_found", source=source.value)
            raise TenantNotFound()
        if not tenant.is_active:
            log.info("tenant_inactive", tenant_id=tenant.id)
            raise TenantInactive()

        membership: Membership | None = None
        if principal is not None:
            membership = await self._call_store(
                self._store.find_membership(tenant_id=tenant.id, user_id=principal.id)
            )
        return TenantContext(tenant=tenant, membership=membership)

    async def _call_store(self, awaitable):
        try:
            return await awaitable
        except TenantStoreError:
            raise
        except Exception as e:
            log.exception("tenant_store_failed")
            raise TenantStoreError() from e


# --- Module Notes -----------------------------------------------------------
# Slugs and ids must come from disjoint identifier spaces; the store reports a
# collision instead of picking one (see `db.stores.SqlTenantStore.find_tenant`).
