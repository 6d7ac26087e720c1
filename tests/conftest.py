"""
tests.conftest

Shared fixtures for the trust-boundary tests.

Responsibilities:
- Provide an RSA signing key, its JWKS document and a token factory.
- Serve the JWKS endpoint in-process (httpx.MockTransport) with a call counter.
- Provide in-memory user/tenant stores implementing the collaborator protocols.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from tenant_gate.auth.models import GlobalRole, Principal
from tenant_gate.tenancy.models import Membership, Tenant, TenantRole

ISSUER = "https://login.microsoftonline.com/test-tenant/v2.0"
AUDIENCE = "client-123"
JWKS_URL = "https://login.microsoftonline.com/test-tenant/discovery/v2.0/keys"
KID = "test-key-1"
MASTER_KEY = "m" * 48


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks_document(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    jwk = json.loads(RSAAlgorithm.to_jwk(rsa_private_key.public_key()))
    jwk.update({"kid": KID, "use": "sig", "alg": "RS256"})
    return {"keys": [jwk]}


@pytest.fixture
def make_token(rsa_private_key: rsa.RSAPrivateKey):
    def _make(
        *,
        headers: dict[str, Any] | None = None,
        key: Any = None,
        algorithm: str = "RS256",
        drop: tuple[str, ...] = (),
        **claims: Any,
    ) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": ISSUER,
            "aud": AUDIENCE,
            "sub": "sub-u1",
            "oid": "u1",
            "email": "u1@acme.example",
            "name": "User One",
            "iat": now,
            "exp": now + 3600,
        }
        payload.update(claims)
        for name in drop:
            payload.pop(name, None)
        return jwt.encode(
            payload,
            key if key is not None else rsa_private_key,
            algorithm=algorithm,
            headers={"kid": KID, **(headers or {})},
        )

    return _make


@dataclass
class JwksEndpoint:
    document: dict[str, Any]
    calls: int = 0
    status_code: int = 200
    raise_timeout: bool = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.raise_timeout:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(self.status_code, json=self.document)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def jwks_endpoint(jwks_document: dict[str, Any]) -> JwksEndpoint:
    return JwksEndpoint(document=jwks_document)


@dataclass
class InMemoryTenantStore:
    tenants: list[Tenant] = field(default_factory=list)
    memberships: list[Membership] = field(default_factory=list)
    fail_with: Exception | None = None
    lookups: list[str] = field(default_factory=list)

    async def find_tenant(self, identifier: str) -> Tenant | None:
        self.lookups.append(identifier)
        if self.fail_with is not None:
            raise self.fail_with
        for tenant in self.tenants:
            if identifier in (tenant.id, tenant.slug):
                return tenant
        return None

    async def find_membership(self, *, tenant_id: str, user_id: str) -> Membership | None:
        for m in self.memberships:
            if m.tenant_id == tenant_id and m.user_id == user_id:
                return m
        return None


@dataclass
class InMemoryUserStore:
    users: list[Principal] = field(default_factory=list)
    created: int = 0

    async def find_by_emails(self, emails: tuple[str, ...]) -> Principal | None:
        return next((u for u in self.users if u.email in emails), None)

    async def create(self, *, email: str, display_name: str, role: GlobalRole) -> Principal:
        self.created += 1
        principal = Principal(
            id=f"local-{self.created}", email=email, display_name=display_name, global_role=role
        )
        self.users.append(principal)
        return principal


@pytest.fixture
def tenant_store() -> InMemoryTenantStore:
    return InMemoryTenantStore(
        tenants=[
            Tenant(id="t-acme", slug="acme", name="Acme", is_active=True, subscription_status="ACTIVE"),
            Tenant(id="t-beta", slug="beta", name="Beta", is_active=True, subscription_status="ACTIVE"),
            Tenant(id="t-dead", slug="dead", name="Dead", is_active=False, subscription_status="CANCELED"),
        ],
        memberships=[
            Membership(tenant_id="t-acme", user_id="u1", tenant_role=TenantRole.owner),
            Membership(tenant_id="t-beta", user_id="u1", tenant_role=TenantRole.viewer),
        ],
    )


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()
