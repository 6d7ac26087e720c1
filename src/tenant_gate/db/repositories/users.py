"""
tenant_gate.db.repositories.users

Repository for `User` entities.

Responsibilities:
- Look up local user records by email.
- Create users and record logins (issuer object id, last login time).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_gate.db.models import User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def first_by_emails(self, emails: Iterable[str]) -> User | None:
        stmt = select(User).where(User.email.in_(list(emails))).order_by(User.created_at).limit(1)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(
        self, *, email: str, name: str, role: str, azure_oid: str | None = None
    ) -> User:
        user = User(email=email, name=name, role=role, azure_oid=azure_oid)
        self._session.add(user)
        await self._session.flush()
        return user

    async def record_login(
        self, *, email: str, name: str, role: str, azure_oid: str | None
    ) -> User:
        """
        Create the user on first login; afterwards only touch login metadata.
        """

        user = await self.first_by_emails((email,))
        if user is None:
            user = await self.create(email=email, name=name, role=role, azure_oid=azure_oid)
        elif azure_oid and user.azure_oid is None:
            user.azure_oid = azure_oid
        user.last_login_at = datetime.utcnow()
        await self._session.flush()
        return user


# --- Module Notes -----------------------------------------------------------
# The global role of an existing user is never rewritten from a token; tokens carry
# their own roles and are resolved per request.
