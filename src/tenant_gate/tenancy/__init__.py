"""
tenant_gate.tenancy

Tenant resolution package.

Responsibilities:
- Extract tenant signals from requests.
- Resolve signals to exactly one active tenant and the caller's membership.
"""

# Package marker.
