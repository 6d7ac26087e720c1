"""
tenant_gate.api.routers.vault

Tenant credential vault.

Responsibilities:
- Store credentials encrypted with the tenant-scoped `SecretCipher`.
- Return metadata by default; decrypt only on explicit reveal.
- Keep every lookup filtered by the resolved tenant.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_204_NO_CONTENT,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from tenant_gate.api.deps import cipher_dep, db_session, require_access
from tenant_gate.auth.gate import RequestContext
from tenant_gate.crypto.cipher import EncryptedSecret, SecretCipher
from tenant_gate.db.models import VaultCredential
from tenant_gate.db.repositories.vault import VaultRepo
from tenant_gate.errors import AuthenticationFailed
from tenant_gate.observability.logging import get_logger
from tenant_gate.tenancy.models import TenantRole

log = get_logger(__name__)

router = APIRouter(prefix="/v1/vault/credentials", tags=["vault"])

_READERS = {TenantRole.owner, TenantRole.admin, TenantRole.member, TenantRole.viewer}
_WRITERS = {TenantRole.owner, TenantRole.admin, TenantRole.member}
_MANAGERS = {TenantRole.owner, TenantRole.admin}


class CredentialCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    username: str | None = Field(default=None, max_length=256)
    url: str | None = Field(default=None, max_length=2048)
    notes: str | None = None
    password: str = Field(min_length=1, repr=False)


class CredentialUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=256)
    username: str | None = Field(default=None, max_length=256)
    url: str | None = Field(default=None, max_length=2048)
    notes: str | None = None
    password: str | None = Field(default=None, min_length=1, repr=False)


class CredentialResponse(BaseModel):
    id: str
    title: str
    username: str | None
    url: str | None
    notes: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: VaultCredential) -> CredentialResponse:
        return cls(
            id=row.id,
            title=row.title,
            username=row.username,
            url=row.url,
            notes=row.notes,
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class CredentialRevealResponse(BaseModel):
    id: str
    password: str


def _secret_of(row: VaultCredential) -> EncryptedSecret:
    return EncryptedSecret.from_record(
        {"ciphertext": row.ciphertext, "iv": row.iv, "auth_tag": row.auth_tag, "salt": row.salt}
    )


async def _get_or_404(repo: VaultRepo, ctx: RequestContext, credential_id: str) -> VaultCredential:
    row = await repo.get(tenant_id=ctx.tenant.id, credential_id=credential_id)  # type: ignore[union-attr]
    if row is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Credential not found")
    return row


@router.get("", response_model=list[CredentialResponse])
async def list_credentials(
    search: str | None = Query(default=None, max_length=256),
    ctx: RequestContext = Depends(require_access(tenant_roles=_READERS)),
    session: AsyncSession = Depends(db_session),
) -> list[CredentialResponse]:
    rows = await VaultRepo(session).list_for_tenant(ctx.tenant.id, search=search)  # type: ignore[union-attr]
    return [CredentialResponse.from_row(r) for r in rows]


@router.post("", response_model=CredentialResponse, status_code=HTTP_201_CREATED)
async def create_credential(
    body: CredentialCreateRequest,
    ctx: RequestContext = Depends(require_access(tenant_roles=_WRITERS)),
    session: AsyncSession = Depends(db_session),
    cipher: SecretCipher = Depends(cipher_dep),
) -> CredentialResponse:
    tenant_id = ctx.tenant.id  # type: ignore[union-attr]
    secret = await cipher.encrypt_async(body.password, tenant_id)
    row = await VaultRepo(session).add(
        tenant_id=tenant_id,
        title=body.title,
        username=body.username,
        url=body.url,
        notes=body.notes,
        record=secret.to_record(),
        created_by=ctx.principal.id,  # type: ignore[union-attr]
    )
    await session.commit()
    log.info("vault_credential_created", credential_id=row.id)
    return CredentialResponse.from_row(row)


@router.get("/{credential_id}", response_model=CredentialResponse)
async def get_credential(
    credential_id: str,
    ctx: RequestContext = Depends(require_access(tenant_roles=_READERS)),
    session: AsyncSession = Depends(db_session),
) -> CredentialResponse:
    row = await _get_or_404(VaultRepo(session), ctx, credential_id)
    return CredentialResponse.from_row(row)


@router.put("/{credential_id}", response_model=CredentialResponse)
async def update_credential(
    credential_id: str,
    body: CredentialUpdateRequest,
    ctx: RequestContext = Depends(require_access(tenant_roles=_WRITERS)),
    session: AsyncSession = Depends(db_session),
    cipher: SecretCipher = Depends(cipher_dep),
) -> CredentialResponse:
    repo = VaultRepo(session)
    row = await _get_or_404(repo, ctx, credential_id)
    for field_name in ("title", "username", "url", "notes"):
        value = getattr(body, field_name)
        if value is not None:
            setattr(row, field_name, value)
    if body.password is not None:
        # Re-encryption always produces a new salt/iv/tag set.
        secret = await cipher.encrypt_async(body.password, row.tenant_id)
        repo.replace_secret(row, secret.to_record())
    await session.commit()
    return CredentialResponse.from_row(row)


@router.post("/{credential_id}/reveal", response_model=CredentialRevealResponse)
async def reveal_credential(
    credential_id: str,
    ctx: RequestContext = Depends(require_access(tenant_roles=_WRITERS)),
    session: AsyncSession = Depends(db_session),
    cipher: SecretCipher = Depends(cipher_dep),
) -> CredentialRevealResponse:
    row = await _get_or_404(VaultRepo(session), ctx, credential_id)
    try:
        password = await cipher.decrypt_async(_secret_of(row), row.tenant_id)
    except (AuthenticationFailed, ValueError) as e:
        correlation_id = getattr(e, "correlation_id", None)
        log.error("vault_reveal_failed", credential_id=row.id, correlation_id=correlation_id)
        raise HTTPException(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"reason": "DECRYPTION_FAILED", "correlation_id": correlation_id},
        ) from None
    log.info("vault_credential_revealed", credential_id=row.id)
    return CredentialRevealResponse(id=row.id, password=password)


@router.delete("/{credential_id}", status_code=HTTP_204_NO_CONTENT)
async def delete_credential(
    credential_id: str,
    ctx: RequestContext = Depends(require_access(tenant_roles=_MANAGERS)),
    session: AsyncSession = Depends(db_session),
) -> None:
    repo = VaultRepo(session)
    row = await _get_or_404(repo, ctx, credential_id)
    await repo.delete(row)
    await session.commit()


# --- Module Notes -----------------------------------------------------------
# `tenant_roles` guarantees both a principal and a tenant in the context, which is
# what the `type: ignore[union-attr]` markers above rely on.
