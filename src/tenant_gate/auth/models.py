"""
tenant_gate.auth.models

Auth domain models.

Responsibilities:
- Define the authenticated identity type (`Principal`) injected into endpoints.
- Define the normalized token claim set (`ClaimSet`) and its pure mapping from raw payloads.
- Define the process-wide authentication mode (`AuthMode`).
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tenant_gate.errors import ConfigurationError
from tenant_gate.settings import Settings


class GlobalRole(enum.StrEnum):
    admin = "ADMIN"
    user = "USER"
    viewer = "VIEWER"

    @classmethod
    def parse(cls, value: object) -> GlobalRole | None:
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


class AuthMode(enum.StrEnum):
    production = "PRODUCTION"
    development = "DEVELOPMENT"

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthMode:
        if not settings.dev_auth_enabled:
            return cls.production
        if settings.env == "prod":
            raise ConfigurationError("dev_auth_enabled must not be set when env=prod")
        return cls.development


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity.
    """

    id: str
    email: str
    display_name: str
    global_role: GlobalRole = GlobalRole.user
    issuer_subject_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.global_role is GlobalRole.admin


def _opt_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _opt_int(payload: Mapping[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


@dataclass(frozen=True, slots=True)
class ClaimSet:
    subject: str | None = None
    object_id: str | None = None
    email: str | None = None
    preferred_username: str | None = None
    name: str | None = None
    roles: tuple[str, ...] = ()
    issuer_tenant_id: str | None = None
    issued_at: int | None = None
    expires_at: int | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ClaimSet:
        roles_raw = payload.get("roles") or ()
        if isinstance(roles_raw, str):
            roles_raw = (roles_raw,)
        elif not isinstance(roles_raw, (list, tuple)):
            roles_raw = ()
        return cls(
            subject=_opt_str(payload, "sub"),
            object_id=_opt_str(payload, "oid"),
            email=_opt_str(payload, "email"),
            preferred_username=_opt_str(payload, "preferred_username"),
            name=_opt_str(payload, "name"),
            roles=tuple(str(r) for r in roles_raw if r),
            issuer_tenant_id=_opt_str(payload, "tid"),
            issued_at=_opt_int(payload, "iat"),
            expires_at=_opt_int(payload, "exp"),
        )


# --- Module Notes -----------------------------------------------------------
# Keep `Principal` minimal; it is used across API handlers, the gate and the vault.
