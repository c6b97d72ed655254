"""FastAPI dependencies: storage, engine wiring and the calling actor."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.database import get_db
from medibook.core.sql_store import SqlSchedulingStore
from medibook.scheduling import Actor, ActorRole, KeyedLock, SchedulingService, SchedulingStore


async def get_store(db: AsyncSession = Depends(get_db)) -> SchedulingStore:
    """Request-scoped SQL store. Overridden with the in-memory store in demo mode."""
    return SqlSchedulingStore(db)


def get_locks(request: Request) -> KeyedLock:
    """The process-wide booking lock registry, kept on ``app.state``."""
    locks = getattr(request.app.state, "booking_locks", None)
    if locks is None:
        locks = KeyedLock()
        request.app.state.booking_locks = locks
    return locks


async def get_service(
    store: SchedulingStore = Depends(get_store),
    locks: KeyedLock = Depends(get_locks),
) -> SchedulingService:
    return SchedulingService(store, locks)


def _parse_actor(role: Optional[str], actor_id: Optional[str]) -> Optional[Actor]:
    if not role:
        return None
    try:
        return Actor(role=ActorRole(role.upper()), id=actor_id or None)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid X-Actor-Role: {role}")


async def get_optional_actor(
    x_actor_role: Optional[str] = Header(None),
    x_actor_id: Optional[str] = Header(None),
) -> Optional[Actor]:
    """Actor asserted by the upstream gateway, if any."""
    return _parse_actor(x_actor_role, x_actor_id)


async def get_actor(
    actor: Optional[Actor] = Depends(get_optional_actor),
) -> Actor:
    """Require an actor; status changes are role-restricted."""
    if actor is None:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Role header")
    return actor
