"""
tenant_gate.auth.jwks

Signing-key cache for the trusted identity issuer.

Responsibilities:
- Fetch the issuer's JWKS document over HTTP (bounded by a timeout).
- Cache public verification keys by key id with a freshness window (24h default).
- Keep only keys usable with the pinned signing algorithm.
- Report fetch failures as `KeyUnavailable`, never as a token rejection.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
import jwt
from jwt.exceptions import InvalidKeyError, PyJWKError

from tenant_gate.errors import KeyUnavailable
from tenant_gate.observability.logging import get_logger
from tenant_gate.settings import Settings

log = get_logger(__name__)

_KEY_TYPES = {"RS": "RSA", "PS": "RSA", "ES": "EC"}


def key_type_for(algorithm: str) -> str | None:
    return _KEY_TYPES.get(algorithm[:2].upper())


@dataclass(frozen=True, slots=True)
class _CachedKey:
    key: Any
    fetched_at: float


class SigningKeyCache:
    """
    Keys are immutable once fetched. Concurrent misses may fetch the same document
    twice; the last write wins and no lock serializes unrelated requests.
    """

    def __init__(
        self,
        *,
        jwks_url: str,
        algorithm: str = "RS256",
        http: httpx.AsyncClient | None = None,
        ttl_seconds: float = 24 * 60 * 60,
        min_refresh_seconds: float = 30.0,
        timeout_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._jwks_url = jwks_url
        self._algorithm = algorithm
        self._key_type = key_type_for(algorithm)
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout_seconds)
        self._timeout = timeout_seconds
        self._ttl = ttl_seconds
        self._min_refresh = min_refresh_seconds
        self._clock = clock
        self._keys: dict[str, _CachedKey] = {}
        self._last_fetch: float | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, *, http: httpx.AsyncClient | None = None
    ) -> SigningKeyCache:
        return cls(
            jwks_url=settings.resolved_jwks_url,
            algorithm=settings.jwt_algorithm,
            http=http,
            ttl_seconds=settings.jwks_cache_ttl_seconds,
            min_refresh_seconds=settings.jwks_min_refresh_seconds,
            timeout_seconds=settings.jwks_timeout_seconds,
        )

    async def get_signing_key(self, kid: str) -> Any | None:
        """
        Return the public key for `kid`, or None when the issuer does not publish it.
        """

        now = self._clock()
        cached = self._keys.get(kid)
        if cached is not None and now - cached.fetched_at < self._ttl:
            return cached.key

        if cached is None and self._recently_fetched(now):
            # Unknown kid right after a refresh: do not let forged kids drive fetches.
            log.info("jwks_unknown_kid", kid=kid)
            return None

        await self.refresh()
        cached = self._keys.get(kid)
        if cached is None:
            log.info("jwks_unknown_kid", kid=kid)
            return None
        return cached.key

    async def refresh(self) -> int:
        document = await self._fetch()
        fetched_at = self._clock()
        keys: dict[str, _CachedKey] = {}
        for jwk_data in document.get("keys", []):
            kid = jwk_data.get("kid") if isinstance(jwk_data, dict) else None
            if not kid:
                continue
            if jwk_data.get("kty") != self._key_type:
                log.info("jwks_key_skipped", kid=kid, kty=jwk_data.get("kty"))
                continue
            try:
                key = jwt.PyJWK(jwk_data, algorithm=self._algorithm).key
            except (PyJWKError, InvalidKeyError, ValueError) as e:
                log.warning("jwks_key_skipped", kid=kid, error=str(e))
                continue
            keys[kid] = _CachedKey(key=key, fetched_at=fetched_at)
        # Swap the whole map; keys dropped by the issuer stop verifying.
        self._keys = keys
        self._last_fetch = fetched_at
        log.info("jwks_refreshed", loaded=len(keys))
        return len(keys)

    async def _fetch(self) -> dict[str, Any]:
        try:
            r = await self._http.get(self._jwks_url, timeout=self._timeout)
            r.raise_for_status()
            document = r.json()
        except httpx.TimeoutException as e:
            log.warning("jwks_fetch_timeout", url=self._jwks_url)
            raise KeyUnavailable("Timed out fetching signing keys") from e
        except httpx.HTTPError as e:
            log.warning("jwks_fetch_failed", url=self._jwks_url, error=str(e))
            raise KeyUnavailable() from e
        except ValueError as e:
            log.warning("jwks_invalid_document", url=self._jwks_url)
            raise KeyUnavailable("Signing key document is not valid JSON") from e

        if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
            raise KeyUnavailable("Signing key document has no key list")
        return document

    def _recently_fetched(self, now: float) -> bool:
        return self._last_fetch is not None and now - self._last_fetch < self._min_refresh

    def clear(self) -> None:
        self._keys.clear()
        self._last_fetch = None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()


# --- Module Notes -----------------------------------------------------------
# The cache is built once in the app lifespan (`api.app`) and shared by every request
# through `TokenVerifier`.
