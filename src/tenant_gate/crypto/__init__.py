"""
tenant_gate.crypto

Secret-protection primitives.

Responsibilities:
- Tenant-scoped authenticated encryption of stored secrets.
"""

# Package marker.
