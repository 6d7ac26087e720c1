"""
tenant_gate.auth.identity

Identity resolution: verified claims (or the dev fallback) to a canonical `Principal`.

Responsibilities:
- Map issuer-specific claim names onto `Principal`.
- Provide the development-mode fallback identity, reachable only in `AuthMode.development`.
"""

from __future__ import annotations

from typing import Protocol

from tenant_gate.auth.models import AuthMode, ClaimSet, GlobalRole, Principal
from tenant_gate.errors import DevModeDisabledError, InvalidToken
from tenant_gate.observability.logging import get_logger
from tenant_gate.settings import Settings

log = get_logger(__name__)


class UserStore(Protocol):
    async def find_by_emails(self, emails: tuple[str, ...]) -> Principal | None: ...

    async def create(self, *, email: str, display_name: str, role: GlobalRole) -> Principal: ...


def principal_from_claims(claims: ClaimSet) -> Principal:
    # Object id is stable across renames; `sub` is the fallback.
    principal_id = claims.object_id or claims.subject
    if not principal_id:
        raise InvalidToken("Token has no subject")

    email = claims.email or claims.preferred_username or ""
    display_name = claims.name or claims.preferred_username or email
    role = next(
        (r for r in (GlobalRole.parse(raw) for raw in claims.roles) if r is not None),
        GlobalRole.user,
    )
    return Principal(
        id=principal_id,
        email=email,
        display_name=display_name,
        global_role=role,
        issuer_subject_id=claims.object_id,
    )


class IdentityResolver:
    def __init__(
        self,
        *,
        mode: AuthMode,
        users: UserStore | None = None,
        dev_email: str = "demo@it-doku.local",
        dev_name: str = "Demo User",
    ) -> None:
        if mode is AuthMode.development and users is None:
            raise ValueError("Development auth requires a user store")
        self._mode = mode
        self._users = users
        self._dev_email = dev_email
        self._dev_name = dev_name

    @classmethod
    def from_settings(
        cls, settings: Settings, *, mode: AuthMode, users: UserStore | None
    ) -> IdentityResolver:
        return cls(
            mode=mode,
            users=users,
            dev_email=settings.dev_user_email,
            dev_name=settings.dev_user_name,
        )

    @property
    def mode(self) -> AuthMode:
        return self._mode

    def resolve(self, claims: ClaimSet) -> Principal:
        return principal_from_claims(claims)

    async def resolve_dev(self, *, create: bool = True) -> Principal | None:
        if self._mode is not AuthMode.development or self._users is None:
            raise DevModeDisabledError("Development identity requested outside development mode")

        emails = (self._dev_email, "dev@it-doku.local")
        principal = await self._users.find_by_emails(emails)
        if principal is None and create:
            principal = await self._users.create(
                email=self._dev_email,
                display_name=self._dev_name,
                role=GlobalRole.admin,
            )
            log.info("dev_user_created", email=principal.email)
        return principal


# --- Module Notes -----------------------------------------------------------
# `resolve_dev` is the only path that skips token verification; the gate calls it
# solely when the injected mode is `AuthMode.development`.
