"""
tenant_gate.db

Persistence layer for users, tenants, memberships and vault credentials.

Responsibilities:
- SQLAlchemy declarative base, ORM models and async session helpers.
- Store adapters implementing the auth pipeline's collaborator protocols.
"""

# Package marker.
