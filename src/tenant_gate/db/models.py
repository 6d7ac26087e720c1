"""
tenant_gate.db.models

Persistence schema read (and, for the vault, written) by the trust boundary.

Responsibilities:
- Define ORM models:
  - User: platform account with a global role
  - Tenant: isolated customer namespace (unique id and slug)
  - TenantMember: one role per (tenant, user)
  - VaultCredential: tenant-scoped secret stored as a four-field encrypted record
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_gate.db.base import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    # GlobalRole value; stored as text so the enum can grow without a migration.
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="USER")
    azure_oid: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    subscription_status: Mapped[str] = mapped_column(String(32), nullable=False, default="TRIAL")
    subscription_plan: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    members: Mapped[list[TenantMember]] = relationship(
        back_populates="tenant", cascade="all, delete-orphan"
    )


class TenantMember(Base):
    __tablename__ = "tenant_members"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    # Principal id (issuer object id or local user id); not a hard FK so issuer
    # identities can be granted membership before their first login.
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="MEMBER")

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)

    tenant: Mapped[Tenant] = relationship(back_populates="members")

    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_tenant_members_tenant_user"),)


class VaultCredential(Base):
    __tablename__ = "vault_credentials"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    username: Mapped[str | None] = mapped_column(String(256), nullable=True)
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Encrypted secret record (hex). Replaced as a unit on re-encryption.
    ciphertext: Mapped[str] = mapped_column(Text, nullable=False)
    iv: Mapped[str] = mapped_column(String(64), nullable=False)
    auth_tag: Mapped[str] = mapped_column(String(64), nullable=False)
    salt: Mapped[str] = mapped_column(String(128), nullable=False)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (Index("ix_vault_credentials_tenant_created", "tenant_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# The auth pipeline only reads `tenants` and `tenant_members`; `users` is written solely
# by the development identity bootstrap.
