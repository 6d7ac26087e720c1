"""
tenant_gate.tenancy.models

Tenancy domain models.

Responsibilities:
- Read-only views of tenant and membership records owned by the data store.
- The resolved `TenantContext` handed to the authorization gate.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class TenantRole(enum.StrEnum):
    owner = "OWNER"
    admin = "ADMIN"
    member = "MEMBER"
    viewer = "VIEWER"


@dataclass(frozen=True, slots=True)
class Tenant:
    id: str
    slug: str
    name: str
    is_active: bool
    subscription_status: str
    subscription_plan: str | None = None


@dataclass(frozen=True, slots=True)
class Membership:
    tenant_id: str
    user_id: str
    tenant_role: TenantRole


@dataclass(frozen=True, slots=True)
class TenantContext:
    tenant: Tenant
    # None means "authenticated but not a member"; not a denial at this layer.
    membership: Membership | None = None
