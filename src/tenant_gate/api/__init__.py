"""
tenant_gate.api

HTTP surface for the trust boundary.

Responsibilities:
- App factory, dependency wiring and routers.
"""

# Package marker.
