"""
tenant_gate.db.repositories.vault

Repository for `VaultCredential` entities.

Responsibilities:
- Tenant-scoped CRUD for stored credentials; every query is filtered by tenant id.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_gate.db.models import VaultCredential


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class VaultRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        tenant_id: str,
        title: str,
        username: str | None,
        url: str | None,
        notes: str | None,
        record: dict[str, str],
        created_by: str,
    ) -> VaultCredential:
        cred = VaultCredential(
            tenant_id=tenant_id,
            title=title,
            username=username,
            url=url,
            notes=notes,
            created_by=created_by,
            **record,
        )
        self._session.add(cred)
        await self._session.flush()
        return cred

    async def get(self, *, tenant_id: str, credential_id: str) -> VaultCredential | None:
        # Never fetch by id alone: a foreign tenant's id must look like "not found".
        stmt = select(VaultCredential).where(
            VaultCredential.id == credential_id, VaultCredential.tenant_id == tenant_id
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_for_tenant(
        self, tenant_id: str, *, search: str | None = None, limit: int = 200
    ) -> list[VaultCredential]:
        stmt = select(VaultCredential).where(VaultCredential.tenant_id == tenant_id)
        if search:
            pattern = f"%{_escape_like(search)}%"
            stmt = stmt.where(VaultCredential.title.ilike(pattern, escape="\\"))
        stmt = stmt.order_by(desc(VaultCredential.created_at)).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    def replace_secret(self, cred: VaultCredential, record: dict[str, str]) -> None:
        cred.ciphertext = record["ciphertext"]
        cred.iv = record["iv"]
        cred.auth_tag = record["auth_tag"]
        cred.salt = record["salt"]
        cred.updated_at = datetime.utcnow()

    async def delete(self, cred: VaultCredential) -> None:
        await self._session.delete(cred)
        await self._session.flush()


# --- Module Notes -----------------------------------------------------------
# Records are the output of `crypto.cipher.EncryptedSecret.to_record`.
