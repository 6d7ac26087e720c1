"""
tests.test_gate

Authorization ordering and outcome mapping.
"""

from __future__ import annotations

import pytest
from conftest import AUDIENCE, ISSUER, JWKS_URL

from tenant_gate.auth.gate import AccessRequest, Allowed, AuthorizationGate, Denied, Failed
from tenant_gate.auth.identity import IdentityResolver
from tenant_gate.auth.jwks import SigningKeyCache
from tenant_gate.auth.jwt import JwtConfig, TokenVerifier
from tenant_gate.auth.models import AuthMode, GlobalRole
from tenant_gate.errors import DenialReason, FailureReason, TenantIdentifierConflict
from tenant_gate.tenancy.models import TenantRole
from tenant_gate.tenancy.resolver import TenantResolver
from tenant_gate.tenancy.signals import RequestSignals

EXEMPT = ("/healthz", "/v1/auth")
API_PATH = "/v1/vault/credentials"


@pytest.fixture
def gate(jwks_endpoint, tenant_store) -> AuthorizationGate:
    keys = SigningKeyCache(jwks_url=JWKS_URL, http=jwks_endpoint.client())
    verifier = TokenVerifier(
        cfg=JwtConfig(alg="RS256", issuer=ISSUER, audience=AUDIENCE), keys=keys
    )
    return AuthorizationGate(
        mode=AuthMode.production,
        verifier=verifier,
        identities=IdentityResolver(mode=AuthMode.production),
        tenants=TenantResolver(store=tenant_store, mode=AuthMode.production, exempt_paths=EXEMPT),
    )


@pytest.fixture
def dev_gate(tenant_store, user_store) -> AuthorizationGate:
    return AuthorizationGate(
        mode=AuthMode.development,
        verifier=None,
        identities=IdentityResolver(mode=AuthMode.development, users=user_store),
        tenants=TenantResolver(store=tenant_store, mode=AuthMode.development, exempt_paths=EXEMPT),
    )


def _request(token: str | None = None, *, path: str = API_PATH, **signals: str) -> AccessRequest:
    return AccessRequest(
        authorization=f"Bearer {token}" if token is not None else None,
        signals=RequestSignals(**signals),
        path=path,
    )


@pytest.mark.asyncio
async def test_owner_via_subdomain_is_allowed(gate, make_token) -> None:
    outcome = await gate.authorize(
        _request(make_token(), host="acme.app.example"),
        tenant_roles={TenantRole.owner, TenantRole.admin},
    )
    assert isinstance(outcome, Allowed)
    assert outcome.http_status == 200
    ctx = outcome.context
    assert ctx.principal is not None and ctx.principal.id == "u1"
    assert ctx.tenant is not None and ctx.tenant.id == "t-acme"
    assert ctx.membership is not None and ctx.membership.tenant_role is TenantRole.owner


@pytest.mark.asyncio
async def test_unknown_tenant_is_not_found(gate, make_token) -> None:
    outcome = await gate.authorize(_request(make_token(), tenant_slug_header="ghost"))
    assert outcome == Denied(reason=DenialReason.tenant_not_found, detail="Tenant not found")
    assert outcome.http_status == 404


@pytest.mark.asyncio
async def test_bad_token_hides_tenant_existence(gate, tenant_store) -> None:
    outcome = await gate.authorize(
        AccessRequest(
            authorization="Bearer garbage",
            signals=RequestSignals(tenant_slug_header="ghost"),
            path=API_PATH,
        )
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.unauthenticated
    assert outcome.http_status == 401
    assert tenant_store.lookups == []


@pytest.mark.asyncio
async def test_inactive_tenant_checked_before_roles(gate, make_token) -> None:
    outcome = await gate.authorize(
        _request(make_token(), tenant_slug_header="dead"),
        global_roles={GlobalRole.admin},
        tenant_roles={TenantRole.owner},
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.tenant_inactive
    assert outcome.http_status == 403


@pytest.mark.asyncio
async def test_global_role_checked_before_tenant_role(gate, make_token) -> None:
    outcome = await gate.authorize(
        _request(make_token(), tenant_slug_header="acme"),
        global_roles={GlobalRole.admin},
        tenant_roles={TenantRole.owner},
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.insufficient_global_role


@pytest.mark.asyncio
async def test_global_admin_allowed(gate, make_token) -> None:
    outcome = await gate.authorize(
        _request(make_token(roles=["ADMIN"]), path="/v1/admin/tenants"),
        global_roles={GlobalRole.admin},
        tenant_required=False,
    )
    assert isinstance(outcome, Allowed)
    assert outcome.context.tenant is None


@pytest.mark.asyncio
async def test_viewer_membership_is_insufficient_for_owner_route(gate, make_token) -> None:
    outcome = await gate.authorize(
        _request(make_token(), tenant_slug_header="beta"),
        tenant_roles={TenantRole.owner, TenantRole.admin},
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.insufficient_tenant_role
    assert "admin, owner" in outcome.detail


@pytest.mark.asyncio
async def test_non_member_is_denied_tenant_role(gate, make_token) -> None:
    outcome = await gate.authorize(
        _request(make_token(oid="u9"), tenant_slug_header="acme"),
        tenant_roles={TenantRole.viewer},
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.insufficient_tenant_role


@pytest.mark.asyncio
async def test_tenant_roles_without_tenant_on_exempt_path(gate, make_token) -> None:
    outcome = await gate.authorize(
        _request(make_token(), path="/v1/auth/me"),
        tenant_roles={TenantRole.owner},
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.no_tenant


@pytest.mark.asyncio
async def test_missing_tenant_signal_is_bad_request(gate, make_token) -> None:
    outcome = await gate.authorize(_request(make_token()))
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.no_tenant
    assert outcome.http_status == 400


@pytest.mark.asyncio
async def test_optional_auth_without_header_has_no_principal(gate) -> None:
    outcome = await gate.authorize(_request(path="/v1/auth/session"), optional_auth=True)
    assert isinstance(outcome, Allowed)
    assert outcome.context.principal is None


@pytest.mark.asyncio
async def test_optional_auth_still_rejects_bad_token(gate) -> None:
    outcome = await gate.authorize(
        AccessRequest(authorization="Bearer garbage", path="/v1/auth/session"),
        optional_auth=True,
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.unauthenticated


@pytest.mark.asyncio
async def test_optional_auth_with_role_requirement_is_unauthenticated(gate) -> None:
    outcome = await gate.authorize(
        _request(path="/v1/auth/session"),
        optional_auth=True,
        global_roles={GlobalRole.user},
    )
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.unauthenticated


@pytest.mark.asyncio
async def test_key_outage_is_a_failure_not_a_denial(gate, jwks_endpoint, make_token) -> None:
    jwks_endpoint.status_code = 503
    outcome = await gate.authorize(_request(make_token(), tenant_slug_header="acme"))
    assert isinstance(outcome, Failed)
    assert outcome.reason is FailureReason.key_unavailable
    assert outcome.http_status == 500


@pytest.mark.asyncio
async def test_store_failure_is_internal_error(gate, tenant_store, make_token) -> None:
    tenant_store.fail_with = ConnectionError("db down")
    outcome = await gate.authorize(_request(make_token(), tenant_slug_header="acme"))
    assert isinstance(outcome, Failed)
    assert outcome.reason is FailureReason.internal_error
    assert outcome.http_status == 500


@pytest.mark.asyncio
async def test_identifier_conflict_is_internal_error(gate, tenant_store, make_token) -> None:
    tenant_store.fail_with = TenantIdentifierConflict()
    outcome = await gate.authorize(_request(make_token(), tenant_id_header="acme"))
    assert isinstance(outcome, Failed)
    assert outcome.reason is FailureReason.internal_error


@pytest.mark.asyncio
async def test_development_gate_uses_local_admin(dev_gate, user_store) -> None:
    outcome = await dev_gate.authorize(_request(), global_roles={GlobalRole.admin})
    assert isinstance(outcome, Allowed)
    assert outcome.context.principal is not None
    assert outcome.context.principal.global_role is GlobalRole.admin
    assert outcome.context.tenant is None
    assert user_store.created == 1


@pytest.mark.asyncio
async def test_development_gate_still_validates_tenants(dev_gate) -> None:
    outcome = await dev_gate.authorize(_request(tenant_slug_header="ghost"))
    assert isinstance(outcome, Denied)
    assert outcome.reason is DenialReason.tenant_not_found


@pytest.mark.asyncio
async def test_development_optional_auth_does_not_create_user(dev_gate, user_store) -> None:
    outcome = await dev_gate.authorize(_request(path="/v1/auth/session"), optional_auth=True)
    assert isinstance(outcome, Allowed)
    assert outcome.context.principal is None
    assert user_store.created == 0


def test_production_gate_requires_verifier(tenant_store) -> None:
    with pytest.raises(ValueError):
        AuthorizationGate(
            mode=AuthMode.production,
            verifier=None,
            identities=IdentityResolver(mode=AuthMode.production),
            tenants=TenantResolver(store=tenant_store, mode=AuthMode.production, exempt_paths=()),
        )


def test_gate_rejects_mismatched_modes(tenant_store, user_store) -> None:
    with pytest.raises(ValueError):
        AuthorizationGate(
            mode=AuthMode.development,
            verifier=None,
            identities=IdentityResolver(mode=AuthMode.production, users=user_store),
            tenants=TenantResolver(store=tenant_store, mode=AuthMode.development, exempt_paths=()),
        )
