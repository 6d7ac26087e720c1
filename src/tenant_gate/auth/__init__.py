"""
tenant_gate.auth

Authentication/authorization package.

Responsibilities:
- Signing-key cache and JWT verification.
- Identity resolution into a typed `Principal`.
- The authorization gate composing identity, tenancy and RBAC.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# This package has no FastAPI dependency except `gate.AccessRequest.from_http`;
# HTTP wiring lives in `tenant_gate.api.deps`.
