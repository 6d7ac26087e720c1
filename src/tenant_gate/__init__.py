"""
tenant_gate

Request authorization and tenant-scoped secret encryption for a multi-tenant platform.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
