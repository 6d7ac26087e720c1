"""
tenant_gate.auth.gate

Authorization gate: one pass/fail decision per request.

Responsibilities:
- Run identity, tenant resolution and role checks in a fixed, short-circuiting order.
- Return a typed outcome (`Allowed` | `Denied` | `Failed`) with the request context
  inseparable from the allow decision.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from starlette.requests import Request

from tenant_gate.auth.identity import IdentityResolver
from tenant_gate.auth.jwt import TokenVerifier
from tenant_gate.auth.models import AuthMode, GlobalRole, Principal
from tenant_gate.errors import (
    HTTP_STATUS,
    AuthError,
    DenialReason,
    FailureReason,
    InsufficientGlobalRole,
    InsufficientTenantRole,
    NoTenant,
    Unauthenticated,
    UserStoreError,
)
from tenant_gate.observability.logging import get_logger
from tenant_gate.tenancy.models import Membership, Tenant, TenantRole
from tenant_gate.tenancy.resolver import TenantResolver
from tenant_gate.tenancy.signals import RequestSignals

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AccessRequest:
    authorization: str | None = None
    signals: RequestSignals = field(default_factory=RequestSignals)
    path: str = "/"

    @classmethod
    def from_http(cls, request: Request) -> AccessRequest:
        return cls(
            authorization=request.headers.get("authorization"),
            signals=RequestSignals.from_mappings(request.headers, request.query_params),
            path=request.url.path,
        )


@dataclass(frozen=True, slots=True)
class RequestContext:
    principal: Principal | None = None
    tenant: Tenant | None = None
    membership: Membership | None = None


@dataclass(frozen=True, slots=True)
class Allowed:
    context: RequestContext

    @property
    def http_status(self) -> int:
        return 200


@dataclass(frozen=True, slots=True)
class Denied:
    reason: DenialReason
    detail: str

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.reason]


@dataclass(frozen=True, slots=True)
class Failed:
    reason: FailureReason
    detail: str

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.reason]


AuthorizationOutcome = Allowed | Denied | Failed


def _outcome_from_error(e: AuthError) -> Denied | Failed:
    if isinstance(e.reason, FailureReason):
        return Failed(reason=e.reason, detail=e.message)
    return Denied(reason=e.reason, detail=e.message)


class AuthorizationGate:
    def __init__(
        self,
        *,
        mode: AuthMode,
        verifier: TokenVerifier | None,
        identities: IdentityResolver,
        tenants: TenantResolver,
    ) -> None:
        if mode is AuthMode.production and verifier is None:
            raise ValueError("A token verifier is required outside development mode")
        if identities.mode is not mode:
            raise ValueError("Identity resolver and gate must share one auth mode")
        self._mode = mode
        self._verifier = verifier
        self._identities = identities
        self._tenants = tenants

    @property
    def mode(self) -> AuthMode:
        return self._mode

    async def authorize(
        self,
        request: AccessRequest,
        *,
        global_roles: Iterable[GlobalRole] | None = None,
        tenant_roles: Iterable[TenantRole] | None = None,
        optional_auth: bool = False,
        tenant_required: bool = True,
    ) -> AuthorizationOutcome:
        try:
            # 1) Identity. Never reveals anything about tenants.
            principal = await self._authenticate(request, optional=optional_auth)

            # 2) Tenant. Never reveals anything about roles or membership.
            tenant_ctx = await self._tenants.resolve(
                request.signals,
                principal,
                path=request.path,
                required=tenant_required,
            )
            tenant = tenant_ctx.tenant if tenant_ctx else None
            membership = tenant_ctx.membership if tenant_ctx else None

            # 3) Global role.
            if global_roles is not None:
                if principal is None:
                    raise Unauthenticated("Authentication required")
                if principal.global_role not in frozenset(global_roles):
                    raise InsufficientGlobalRole()

            # 4) Tenant role.
            if tenant_roles is not None:
                if principal is None:
                    raise Unauthenticated("Authentication required")
                if tenant is None:
                    raise NoTenant("Tenant context required")
                if membership is None:
                    raise InsufficientTenantRole("Tenant membership required")
                allowed = frozenset(tenant_roles)
                if membership.tenant_role not in allowed:
                    required = ", ".join(sorted(r.value for r in allowed))
                    raise InsufficientTenantRole(
                        f"Insufficient tenant permissions. Required roles: {required}"
                    )
        except AuthError as e:
            outcome = _outcome_from_error(e)
            if isinstance(outcome, Failed):
                log.warning("authorization_failed", reason=outcome.reason.value)
            else:
                log.info("authorization_denied", reason=outcome.reason.value, path=request.path)
            return outcome

        return Allowed(
            context=RequestContext(principal=principal, tenant=tenant, membership=membership)
        )

    async def _authenticate(self, request: AccessRequest, *, optional: bool) -> Principal | None:
        if self._mode is AuthMode.development:
            principal = await self._resolve_dev(create=not optional)
            if principal is None and not optional:
                raise Unauthenticated("Development user unavailable")
            return principal

        if self._verifier is None:
            raise Unauthenticated()
        if optional and not (request.authorization or "").strip():
            return None
        claims = await self._verifier.verify(request.authorization)
        return self._identities.resolve(claims)

    async def _resolve_dev(self, *, create: bool) -> Principal | None:
        try:
            return await self._identities.resolve_dev(create=create)
        except AuthError:
            raise
        except Exception as e:
            log.exception("dev_user_lookup_failed")
            raise UserStoreError() from e


# --- Module Notes -----------------------------------------------------------
# Ordering is the security property here: authn, then tenant existence/activation,
# then global role, then tenant role. Each step only runs once the previous passed.
