"""
Shared FastAPI dependencies.

Routers import from here (DB session, admin guard, pagination, checkout
session lookup, order persistence) so tests can override one place.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_admin
from services.checkout_service import CheckoutSession, SessionRegistry, get_registry
from services.persistence_service import OrderPersistence, get_persistence

__all__ = [
    "Pagination",
    "pagination_params",
    "get_session_registry",
    "get_checkout_session",
    "get_order_persistence",
    "require_admin",
]


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def get_session_registry() -> SessionRegistry:
    return get_registry()


def get_checkout_session(
    session_id: str = Path(..., min_length=8, max_length=64, description="Checkout session id"),
    registry: SessionRegistry = Depends(get_session_registry),
) -> CheckoutSession:
    """Resolve `{session_id}`; 404 when unknown or expired."""
    return registry.get(session_id)


def get_order_persistence(db: AsyncSession = Depends(get_db)) -> OrderPersistence:
    return get_persistence(db)
