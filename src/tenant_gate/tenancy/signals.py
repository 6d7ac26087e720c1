"""
tenant_gate.tenancy.signals

Tenant signals carried by an inbound request.

Responsibilities:
- Capture the raw tenant-identifying inputs (headers, host, query) in one value.
- Pick the single winning identifier by fixed priority.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

TENANT_ID_HEADER = "x-tenant-id"
TENANT_SLUG_HEADER = "x-tenant-slug"
TENANT_ID_QUERY = "tenantId"
TENANT_SLUG_QUERY = "tenantSlug"


class SignalSource(StrEnum):
    header_id = "HEADER_ID"
    header_slug = "HEADER_SLUG"
    subdomain = "SUBDOMAIN"
    query_id = "QUERY_ID"
    query_slug = "QUERY_SLUG"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def subdomain_of(host: str | None) -> str | None:
    """
    Leftmost label of a host with more than two labels, e.g. `acme.app.example` -> `acme`.
    """

    host = _clean(host)
    if host is None:
        return None
    if host.startswith("["):
        return None  # bracketed IPv6 literal
    hostname = host.rsplit(":", 1)[0] if host.count(":") == 1 else host
    try:
        ipaddress.ip_address(hostname)
        return None
    except ValueError:
        pass
    labels = hostname.rstrip(".").split(".")
    if len(labels) <= 2:
        return None
    return _clean(labels[0])


@dataclass(frozen=True, slots=True)
class RequestSignals:
    tenant_id_header: str | None = None
    tenant_slug_header: str | None = None
    host: str | None = None
    tenant_id_query: str | None = None
    tenant_slug_query: str | None = None

    @classmethod
    def from_mappings(
        cls, headers: Mapping[str, str], query: Mapping[str, str]
    ) -> RequestSignals:
        # Starlette header mappings are case-insensitive; plain dicts are lowered here.
        lowered = {k.lower(): v for k, v in headers.items()}
        return cls(
            tenant_id_header=lowered.get(TENANT_ID_HEADER),
            tenant_slug_header=lowered.get(TENANT_SLUG_HEADER),
            host=lowered.get("host"),
            tenant_id_query=query.get(TENANT_ID_QUERY),
            tenant_slug_query=query.get(TENANT_SLUG_QUERY),
        )

    def pick(self) -> tuple[SignalSource, str] | None:
        """
        First non-empty signal wins; later signals are never consulted.
        """

        candidates = (
            (SignalSource.header_id, _clean(self.tenant_id_header)),
            (SignalSource.header_slug, _clean(self.tenant_slug_header)),
            (SignalSource.subdomain, subdomain_of(self.host)),
            (SignalSource.query_id, _clean(self.tenant_id_query)),
            (SignalSource.query_slug, _clean(self.tenant_slug_query)),
        )
        for source, value in candidates:
            if value:
                return source, value
        return None
