"""
tenant_gate.api.routers.health

Health and readiness endpoints (tenant-exempt, unauthenticated).

Responsibilities:
- Provide liveness check (`/healthz`).
- Provide readiness check (`/readyz`) with DB connectivity validation and the
  active auth mode.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_gate.api.deps import db_session, gate_dep
from tenant_gate.auth.gate import AuthorizationGate

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    gate: AuthorizationGate = Depends(gate_dep),
) -> dict[str, str]:
    # Readiness: the tenant store must be reachable for any request to be authorized.
    await session.execute(text("SELECT 1"))
    return {"status": "ready", "auth_mode": gate.mode.value}


# --- Module Notes -----------------------------------------------------------
# Signing keys are fetched lazily on the first token, so readiness does not call
# the issuer; a key outage shows up per request as KEY_UNAVAILABLE.
