"""
tenant_gate.errors

Error taxonomy for the trust boundary.

Responsibilities:
- Define the auth/tenancy failures raised inside the pipeline (`AuthError` tree).
- Define the secret-cipher failures (`CryptoError` tree).
- Carry a stable reason code and HTTP status for each failure kind.
"""

from __future__ import annotations

import enum

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)


class DenialReason(enum.StrEnum):
    # Terminal security decisions; values are part of the API contract.
    unauthenticated = "UNAUTHENTICATED"
    no_tenant = "NO_TENANT"
    tenant_not_found = "TENANT_NOT_FOUND"
    tenant_inactive = "TENANT_INACTIVE"
    insufficient_global_role = "INSUFFICIENT_GLOBAL_ROLE"
    insufficient_tenant_role = "INSUFFICIENT_TENANT_ROLE"


class FailureReason(enum.StrEnum):
    # Infrastructure failures; retryable by the caller's own policy.
    key_unavailable = "KEY_UNAVAILABLE"
    internal_error = "INTERNAL_ERROR"


HTTP_STATUS: dict[DenialReason | FailureReason, int] = {
    DenialReason.unauthenticated: HTTP_401_UNAUTHORIZED,
    DenialReason.no_tenant: HTTP_400_BAD_REQUEST,
    DenialReason.tenant_not_found: HTTP_404_NOT_FOUND,
    DenialReason.tenant_inactive: HTTP_403_FORBIDDEN,
    DenialReason.insufficient_global_role: HTTP_403_FORBIDDEN,
    DenialReason.insufficient_tenant_role: HTTP_403_FORBIDDEN,
    FailureReason.key_unavailable: HTTP_500_INTERNAL_SERVER_ERROR,
    FailureReason.internal_error: HTTP_500_INTERNAL_SERVER_ERROR,
}


class ConfigurationError(Exception):
    """Startup-time misconfiguration; the service must not start."""


class DevModeDisabledError(RuntimeError):
    """The development identity bypass was invoked while dev auth is off."""


class AuthError(Exception):
    reason: DenialReason | FailureReason = DenialReason.unauthenticated
    default_message = "Authentication required"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.reason]


class Unauthenticated(AuthError):
    reason = DenialReason.unauthenticated
    default_message = "No token provided"


class InvalidToken(Unauthenticated):
    default_message = "Invalid or expired token"


class KeyUnavailable(AuthError):
    reason = FailureReason.key_unavailable
    default_message = "Signing keys unavailable"


class NoTenant(AuthError):
    reason = DenialReason.no_tenant
    default_message = (
        "Tenant identifier required. Please provide X-Tenant-ID or X-Tenant-Slug header."
    )


class TenantNotFound(AuthError):
    reason = DenialReason.tenant_not_found
    default_message = "Tenant not found"


class TenantInactive(AuthError):
    reason = DenialReason.tenant_inactive
    default_message = "Tenant is inactive"


class InsufficientGlobalRole(AuthError):
    reason = DenialReason.insufficient_global_role
    default_message = "Insufficient permissions"


class InsufficientTenantRole(AuthError):
    reason = DenialReason.insufficient_tenant_role
    default_message = "Insufficient tenant permissions"


class TenantStoreError(AuthError):
    reason = FailureReason.internal_error
    default_message = "Tenant resolution failed"


class TenantIdentifierConflict(TenantStoreError):
    default_message = "Tenant identifier matches more than one tenant"


class UserStoreError(AuthError):
    reason = FailureReason.internal_error
    default_message = "User lookup failed"


class CryptoError(Exception):
    pass


class WeakMasterKey(CryptoError):
    def __init__(self, message: str = "Master key must be at least 32 characters long") -> None:
        super().__init__(message)


class AuthenticationFailed(CryptoError):
    def __init__(self, correlation_id: str) -> None:
        super().__init__(f"Secret authentication failed (correlation_id={correlation_id})")
        self.correlation_id = correlation_id


# --- Module Notes -----------------------------------------------------------
# `AuthError` never leaves the gate as an exception: `auth.gate` converts it into an
# outcome value, and `api.deps` maps that outcome onto an HTTP response.
