"""
tenant_gate.api.routers

Router package.
"""

# Package marker.
