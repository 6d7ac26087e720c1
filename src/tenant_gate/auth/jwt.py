"""
tenant_gate.auth.jwt

Bearer-token verification against the identity issuer's signing keys.

Responsibilities:
- Parse the `Authorization` header (format errors never touch the network).
- Pin the signing algorithm before any key lookup (no algorithm confusion).
- Decode and validate JWTs with strict claim requirements (iss/aud/exp/iat).
- Return a normalized `ClaimSet`.
"""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from jwt import InvalidTokenError
from jwt.exceptions import PyJWTError

from tenant_gate.auth.jwks import SigningKeyCache
from tenant_gate.auth.models import ClaimSet
from tenant_gate.errors import InvalidToken, Unauthenticated
from tenant_gate.observability.logging import get_logger
from tenant_gate.settings import Settings

log = get_logger(__name__)

BEARER_PREFIX = "Bearer "

# Only asymmetric signatures are accepted from the issuer.
_ASYMMETRIC_ALGORITHMS = frozenset(
    {"RS256", "RS384", "RS512", "PS256", "PS384", "PS512", "ES256", "ES384", "ES512"}
)


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    leeway_seconds: int = 60

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_algorithm,
            issuer=settings.resolved_issuer,
            audience=settings.resolved_audience,
            leeway_seconds=settings.jwt_leeway_seconds,
        )


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated()
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthenticated()
    return token


class TokenVerifier:
    def __init__(self, *, cfg: JwtConfig, keys: SigningKeyCache) -> None:
        if cfg.alg not in _ASYMMETRIC_ALGORITHMS:
            raise ValueError(f"Unsupported issuer signing algorithm: {cfg.alg}")
        if not cfg.audience:
            raise ValueError("A token audience (client id) must be configured")
        self._cfg = cfg
        self._keys = keys

    async def verify(self, authorization: str | None) -> ClaimSet:
        """
        Raises `Unauthenticated`/`InvalidToken` for rejected credentials and
        `KeyUnavailable` when the issuer's keys cannot be fetched.
        """

        token = extract_bearer_token(authorization)

        try:
            header = jwt.get_unverified_header(token)
        except InvalidTokenError as e:
            raise InvalidToken("Malformed token") from e

        alg = header.get("alg")
        if alg != self._cfg.alg:
            log.warning("token_algorithm_rejected", alg=alg)
            raise InvalidToken()

        kid = header.get("kid")
        if not kid or not isinstance(kid, str):
            raise InvalidToken("Token missing key ID")

        key = await self._keys.get_signing_key(kid)
        if key is None:
            raise InvalidToken()

        try:
            # jwt.decode enforces signature + registered claims (issuer/audience/exp, etc.).
            payload = jwt.decode(
                token,
                key,
                algorithms=[self._cfg.alg],
                issuer=self._cfg.issuer,
                audience=self._cfg.audience,
                leeway=self._cfg.leeway_seconds,
                options={
                    "require": ["exp", "iat", "iss", "aud"],
                },
            )
        except (PyJWTError, TypeError) as e:
            # TypeError: the cached key does not fit the pinned algorithm.
            log.info("token_verification_failed", error=type(e).__name__)
            raise InvalidToken() from e

        return ClaimSet.from_payload(payload)


# --- Module Notes -----------------------------------------------------------
# Leeway applies to exp/iat/nbf and is capped at 300s by `Settings`.
